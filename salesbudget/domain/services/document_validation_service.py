"""
Document Validation Service - the import gate for budget documents.

Runs strictly in order, each stage short-circuiting on failure:
1. Signature / type check
2. Presence of metadata and records
3. Draft check
4. Metadata schema (all violations reported together)
5. Records array shape
6. Per-record validation (failures collected, never short-circuit)
7. Error-rate gate

Nothing here touches the database.
"""
import logging
import math
from typing import Any, List, Optional, Tuple

from salesbudget.config import get_config
from salesbudget.domain.entities import (
    DocumentKind, DocumentMetadata, BudgetRecord,
    DecodedDocument, DraftDocument, FinalDocument,
    RecordError, ValidatedDocument,
)
from salesbudget.domain.exceptions import (
    DocumentMissingData,
    DraftRejected,
    MetadataSchemaInvalid,
    DivisionMismatch,
    RecordsShapeInvalid,
    TooManyInvalidRecords,
)
from salesbudget.modules.document_codec import decode_document

logger = logging.getLogger(__name__)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ''


class DocumentValidationService:
    """
    Service for validating decoded budget documents before persistence.

    Limits (format version, year range, record bounds, error threshold)
    come from the document section of the configuration.
    """

    def __init__(self):
        config = get_config()
        self.format_version = config.document_format_version
        self.year_min, self.year_max = config.document_year_range
        self.max_records = config.document_max_records
        self.max_value = config.document_max_value
        self.error_rate_threshold = config.document_error_rate_threshold
        self.error_sample_size = config.document_error_sample_size

    # =========================================================================
    # Pipeline
    # =========================================================================

    def validate(
        self,
        html: str,
        expected: DocumentKind,
        current_division: Optional[str] = None,
    ) -> ValidatedDocument:
        """
        Decode and validate an uploaded document.

        Args:
            html: Full HTML text of the uploaded file
            expected: Kind of the importer being used
            current_division: Division the caller is working in; when given,
                the file must belong to it

        Returns:
            ValidatedDocument with typed metadata and the surviving records

        Raises:
            DocumentError subclass describing the first failed stage
        """
        logger.info(f"Validating {expected.value} document ({len(html)} chars)")
        decoded = decode_document(html, expected)
        return self.validate_decoded(decoded, current_division=current_division)

    def validate_decoded(
        self,
        decoded: DecodedDocument,
        current_division: Optional[str] = None,
    ) -> ValidatedDocument:
        """Stages 2-7 on an already decoded document."""
        self.check_presence(decoded)
        self.check_draft(decoded)

        metadata_payload = decoded.metadata
        is_valid, violations = self.validate_metadata(metadata_payload, decoded.kind)
        if not is_valid:
            raise MetadataSchemaInvalid(violations)
        metadata = DocumentMetadata.from_payload(metadata_payload)
        if not decoded.kind.requires_owner:
            metadata.owner = None

        if current_division is not None:
            self.check_division(metadata, current_division)

        records_payload = decoded.records
        self.check_records_shape(records_payload)

        valid_records, record_errors = self.validate_records(records_payload, decoded.kind)
        self.apply_error_gate(record_errors, len(records_payload))

        if record_errors:
            logger.warning(
                f"Skipping {len(record_errors)} invalid records out of {len(records_payload)}"
            )
        logger.info(f"Validation passed: {len(valid_records)} valid records")

        return ValidatedDocument(
            kind=decoded.kind,
            metadata=metadata,
            records=valid_records,
            total_records=len(records_payload),
            record_errors=record_errors,
        )

    # =========================================================================
    # Stages
    # =========================================================================

    def check_presence(self, decoded: DecodedDocument) -> None:
        """A draft snapshot counts as content; a final needs both payloads."""
        if isinstance(decoded, DraftDocument):
            return
        if not isinstance(decoded, FinalDocument) or decoded.missing_blocks:
            missing = decoded.missing_blocks if isinstance(decoded, FinalDocument) else []
            logger.warning(f"Budget document missing embedded data: {missing}")
            raise DocumentMissingData(missing)

    def check_draft(self, decoded: DecodedDocument) -> None:
        if isinstance(decoded, DraftDocument):
            raise DraftRejected()
        if isinstance(decoded.metadata, dict) and decoded.metadata.get('isDraft') is True:
            raise DraftRejected()

    def validate_metadata(self, payload: Any, kind: DocumentKind) -> Tuple[bool, List[str]]:
        """
        Check the metadata schema, collecting every violation.

        Returns:
            Tuple of (is_valid, list of violation messages)
        """
        if not isinstance(payload, dict):
            return False, ["Invalid metadata block (expected an object)"]

        errors = []
        if not _non_empty_str(payload.get('division')):
            errors.append("Invalid or missing division")
        if kind.requires_owner and not _non_empty_str(payload.get('salesRep')):
            errors.append("Invalid or missing sales rep name")

        year = payload.get('budgetYear')
        if not _is_int(year) or not self.year_min <= year <= self.year_max:
            errors.append(
                f"Invalid or missing budget year (must be between {self.year_min}-{self.year_max})"
            )
        if payload.get('version') != self.format_version:
            errors.append("Unsupported file version. Please re-export from the system.")
        if payload.get('dataFormat') != kind.data_format:
            errors.append("Invalid data format. This file may not be a budget export.")

        return len(errors) == 0, errors

    def check_division(self, metadata: DocumentMetadata, current_division: str) -> None:
        if current_division.strip().upper() != metadata.division.strip().upper():
            raise DivisionMismatch(current_division, metadata.division)

    def check_records_shape(self, payload: Any) -> None:
        if not isinstance(payload, list):
            raise RecordsShapeInvalid("Invalid budget data format. Expected an array of records.")
        if len(payload) == 0:
            raise RecordsShapeInvalid("No budget data found in file. The file appears to be empty.")
        if len(payload) > self.max_records:
            raise RecordsShapeInvalid(
                f"Too many records ({len(payload)}). Maximum allowed is {self.max_records:,}."
            )

    def validate_record(self, record: Any, kind: DocumentKind) -> List[str]:
        """
        Validate one record independently of the others.

        Returns:
            List of error messages (empty if the record is valid)
        """
        if not isinstance(record, dict):
            return ["Invalid record (expected an object)"]

        errors = []
        if kind.requires_owner:
            if not _non_empty_str(record.get('customer')):
                errors.append("Missing or invalid customer name")
            if not _non_empty_str(record.get('country')):
                errors.append("Missing or invalid country")
        if not _non_empty_str(record.get('productGroup')):
            errors.append("Missing or invalid product group")

        month = record.get('month')
        if not _is_int(month) or not 1 <= month <= 12:
            errors.append("Invalid month (must be 1-12)")

        value = record.get('value')
        if value is None:
            errors.append("Missing value")
        elif not _is_number(value) or math.isnan(value):
            errors.append("Invalid value (must be a number)")
        elif value < 0:
            errors.append("Negative values not allowed")
        elif value == 0:
            errors.append("Zero values not allowed")
        elif value > self.max_value:
            errors.append(f"Value too large (max {self.max_value:,.0f} KGS)")

        return errors

    def validate_records(self, payload: List[Any], kind: DocumentKind) -> Tuple[List[BudgetRecord], List[RecordError]]:
        valid: List[BudgetRecord] = []
        failures: List[RecordError] = []
        for index, record in enumerate(payload, start=1):
            errors = self.validate_record(record, kind)
            if errors:
                label = (record.get('customer') or record.get('productGroup')) if isinstance(record, dict) else None
                month = record.get('month') if isinstance(record, dict) else None
                failures.append(RecordError(
                    index=index,
                    customer=label if isinstance(label, str) and label else 'Unknown',
                    month=month if month is not None else 'Unknown',
                    errors=errors,
                ))
            else:
                valid.append(BudgetRecord.from_payload(record))
        return valid, failures

    def apply_error_gate(self, record_errors: List[RecordError], total: int) -> None:
        """Reject the whole file when the invalid fraction exceeds the threshold."""
        if total and len(record_errors) / total > self.error_rate_threshold:
            sample = [e.to_dict() for e in record_errors[:self.error_sample_size]]
            logger.warning(f"Rejecting document: {len(record_errors)} of {total} records invalid")
            raise TooManyInvalidRecords(len(record_errors), total, sample)
