"""
Domain Exceptions for the budget estimate and document workflows.

Custom exceptions enforcing business rules:
- Base period availability
- Budget document protocol (signature, presence, draft state)
- Metadata and record validation
- Transactional persistence
"""
from typing import List, Optional


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    @property
    def details(self) -> dict:
        """Structured context for API responses."""
        return {}


# =============================================================================
# Estimate Exceptions
# =============================================================================

class NoBasePeriodAvailable(DomainError):
    """Raised when every ACTUAL month of the year is also a target month."""

    def __init__(self, division: str, year: int, target_months: List[int]):
        message = (
            f"No base period months available for {division} {year}. "
            f"All Actual months are selected for estimation ({target_months})."
        )
        super().__init__(message, code="NO_BASE_PERIOD")
        self.division = division
        self.year = year
        self.target_months = list(target_months)

    @property
    def details(self) -> dict:
        return {'division': self.division, 'year': self.year, 'target_months': self.target_months}


class EstimateRequestInvalid(DomainError):
    """Raised when the target months of an estimate request are unusable."""

    def __init__(self, reason: str):
        super().__init__(reason, code="INVALID_ESTIMATE_REQUEST")
        self.reason = reason


# =============================================================================
# Document Exceptions
# =============================================================================

class DocumentError(DomainError):
    """Base class for budget document rejections."""
    pass


class DocumentTypeMismatch(DocumentError):
    """Raised when a document of one kind is submitted to the other importer."""

    def __init__(self, expected: str, actual: str):
        message = (
            f"Wrong file type. This appears to be a {actual} file "
            f"but the {expected} import was used. Please use the matching import instead."
        )
        super().__init__(message, code="DOCUMENT_TYPE_MISMATCH")
        self.expected = expected
        self.actual = actual

    @property
    def details(self) -> dict:
        return {'expected': self.expected, 'actual': self.actual}


class DocumentMissingData(DocumentError):
    """Raised when the embedded metadata or records could not be extracted."""

    def __init__(self, missing: Optional[List[str]] = None):
        message = (
            "Invalid HTML file format. Missing budget metadata or saved budget data. "
            "Please re-export using the in-app \"Save Final\" button."
        )
        super().__init__(message, code="DOCUMENT_MISSING_DATA")
        self.missing = missing or []

    @property
    def details(self) -> dict:
        return {'missing': self.missing}


class MalformedDocumentBlock(DocumentError):
    """Raised when an embedded assignment is present but is not valid JSON."""

    def __init__(self, block: str, reason: str):
        label = "budget metadata" if block == "metadata" else "budget data"
        super().__init__(f"Failed to parse {label} from file: {reason}", code="MALFORMED_DOCUMENT_BLOCK")
        self.block = block
        self.reason = reason

    @property
    def details(self) -> dict:
        return {'block': self.block, 'reason': self.reason}


class DraftRejected(DocumentError):
    """Raised when a work-in-progress draft is submitted for import."""

    def __init__(self):
        message = (
            "Cannot upload draft file! This is a work-in-progress draft. "
            "Please open the file, complete your budget, and click \"Save Final\" before uploading."
        )
        super().__init__(message, code="DRAFT_REJECTED")


class MetadataSchemaInvalid(DocumentError):
    """Raised with every metadata violation found, not just the first."""

    def __init__(self, violations: List[str]):
        message = "File validation failed:\n" + "\n".join(violations)
        super().__init__(message, code="METADATA_SCHEMA_INVALID")
        self.violations = list(violations)

    @property
    def details(self) -> dict:
        return {'violations': self.violations}


class DivisionMismatch(DocumentError):
    """Raised when the file belongs to a different division than the caller's."""

    def __init__(self, current_division: str, file_division: str):
        message = (
            f"Division Mismatch! You are in division: {current_division} "
            f"but this file is for: {file_division}. "
            f"Please switch to the correct division and try again."
        )
        super().__init__(message, code="DIVISION_MISMATCH")
        self.current_division = current_division
        self.file_division = file_division

    @property
    def details(self) -> dict:
        return {'current_division': self.current_division, 'file_division': self.file_division}


class RecordsShapeInvalid(DocumentError):
    """Raised when the records block is not a bounded, non-empty list."""

    def __init__(self, reason: str):
        super().__init__(reason, code="RECORDS_SHAPE_INVALID")
        self.reason = reason


class TooManyInvalidRecords(DocumentError):
    """Raised when the invalid-record fraction exceeds the import threshold."""

    def __init__(self, invalid_count: int, total_count: int, sample: Optional[list] = None):
        message = (
            f"Too many invalid records ({invalid_count} out of {total_count}). "
            f"Please check your file and try again."
        )
        super().__init__(message, code="TOO_MANY_INVALID_RECORDS")
        self.invalid_count = invalid_count
        self.total_count = total_count
        self.sample = sample or []

    @property
    def details(self) -> dict:
        return {
            'invalid_count': self.invalid_count,
            'total_count': self.total_count,
            'errors': self.sample,
        }


# =============================================================================
# Persistence Exceptions
# =============================================================================

class PersistenceError(DomainError):
    """Raised when a write transaction fails and has been rolled back."""

    def __init__(self, operation: str, reason: str = ""):
        message = f"Failed to save {operation}. No changes were made."
        super().__init__(message, code="PERSISTENCE_ERROR")
        self.operation = operation
        self.reason = reason
