"""
Budget Document Entities - the offline-editable budget artifact.

A document is either a Draft (resumable, never importable) or a Final
(importable). The state is carried by the variant type, and the kind
(per sales rep vs. divisional) by DocumentKind. The two kinds must never
be cross-imported.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DocumentKind(str, Enum):
    """Mutually exclusive document types carried in the signature comment."""
    SALES_REP_BUDGET = "SALES_REP_BUDGET"
    DIVISIONAL_BUDGET = "DIVISIONAL_BUDGET"

    @property
    def label(self) -> str:
        return "Sales Rep Budget" if self is DocumentKind.SALES_REP_BUDGET else "Divisional Budget"

    @property
    def data_format(self) -> str:
        """dataFormat marker expected in Final metadata."""
        if self is DocumentKind.SALES_REP_BUDGET:
            return "budget_import"
        return "divisional_budget_import"

    @property
    def requires_owner(self) -> bool:
        return self is DocumentKind.SALES_REP_BUDGET


DRAFT_DATA_FORMAT = "budget_draft"


@dataclass
class DocumentMetadata:
    """Typed metadata of a budget document."""
    division: str
    budget_year: int
    owner: Optional[str] = None  # sales rep; None for divisional documents
    format_version: str = "1.0"
    data_format: str = "budget_import"
    actual_year: Optional[int] = None
    saved_at: Optional[str] = None
    is_draft: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the JSON field names used inside the document."""
        payload: Dict[str, Any] = {
            'division': self.division,
            'salesRep': self.owner,
            'actualYear': self.actual_year if self.actual_year is not None else self.budget_year - 1,
            'budgetYear': self.budget_year,
            'savedAt': self.saved_at,
            'version': self.format_version,
            'dataFormat': self.data_format,
        }
        if self.owner is None:
            del payload['salesRep']
        if self.is_draft:
            payload['isDraft'] = True
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DocumentMetadata":
        """Build from an already schema-validated payload."""
        owner = payload.get('salesRep')
        return cls(
            division=payload['division'].strip(),
            budget_year=int(payload['budgetYear']),
            owner=owner.strip() if isinstance(owner, str) and owner.strip() else None,
            format_version=str(payload.get('version', '')),
            data_format=str(payload.get('dataFormat', '')),
            actual_year=payload.get('actualYear'),
            saved_at=payload.get('savedAt'),
            is_draft=payload.get('isDraft') is True,
        )


@dataclass
class BudgetRecord:
    """One month of budgeted quantity (KGS) for a budget line."""
    product_group: str
    month: int
    value: float
    customer: Optional[str] = None
    country: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.customer is not None:
            payload['customer'] = self.customer
        if self.country is not None:
            payload['country'] = self.country
        payload['productGroup'] = self.product_group
        payload['month'] = self.month
        payload['value'] = self.value
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BudgetRecord":
        """Build from an already validated record payload."""
        customer = payload.get('customer')
        country = payload.get('country')
        return cls(
            product_group=payload['productGroup'].strip(),
            month=int(payload['month']),
            value=float(payload['value']),
            customer=customer.strip() if isinstance(customer, str) else None,
            country=country.strip() if isinstance(country, str) else None,
        )


@dataclass
class DecodedDocument:
    """Raw result of decoding; payloads are unvalidated JSON values."""
    kind: DocumentKind
    signature_version: Optional[str] = None
    has_signature: bool = False


@dataclass
class DraftDocument(DecodedDocument):
    """A work-in-progress snapshot; never importable."""
    draft_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FinalDocument(DecodedDocument):
    """An importable document; either payload may be missing if the file was tampered with."""
    metadata: Optional[Any] = None
    records: Optional[Any] = None
    legacy_layout: bool = False

    @property
    def missing_blocks(self) -> List[str]:
        missing = []
        if self.metadata is None:
            missing.append('metadata')
        if self.records is None:
            missing.append('records')
        return missing


@dataclass
class RecordError:
    """Validation failure of one record (index is 1-based)."""
    index: int
    customer: str
    month: Any
    errors: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {'index': self.index, 'customer': self.customer, 'month': self.month, 'errors': self.errors}


@dataclass
class ValidatedDocument:
    """Output of the validation pipeline: typed metadata plus surviving records."""
    kind: DocumentKind
    metadata: DocumentMetadata
    records: List[BudgetRecord]
    total_records: int
    record_errors: List[RecordError] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.record_errors)
