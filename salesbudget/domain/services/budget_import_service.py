"""
Budget Import Service - replaces a persisted budget with a validated document.

For a key (division, sales rep, budget year) or (division, year):
1. Read existing row count and last upload provenance (advisory)
2. Delete every row stored for the key            } one transaction
3. Insert the validated records (already KGS)     }
4. Resolve pricing for budget year - 1 (read only)
5. Compute quantity / revenue / margin totals for the caller

Revenue and margin are never stored; summaries recompute them on read.
Concurrent imports for the same key are last-commit-wins.
"""
import logging
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from salesbudget.config import get_config
from salesbudget.models import DataType, ValuesType
from salesbudget.infrastructure.repositories import (
    SalesRepBudgetRepository,
    DivisionalBudgetRepository,
    MaterialMappingRepository,
)
from salesbudget.infrastructure.cache import invalidate_budget_cache
from salesbudget.domain.entities import (
    DocumentKind, BudgetRecord, ValidatedDocument,
    MetricSeries, ImportOutcome, BudgetTotals, ExistingBudgetInfo,
    DimensionKey, normalize_product_group,
)
from salesbudget.domain.exceptions import PersistenceError
from .document_validation_service import DocumentValidationService
from .pricing_resolver import PricingResolver

logger = logging.getLogger(__name__)

_PROPER_CASE_RE = re.compile(r'(?:^|\s|[-/])\w')


def to_proper_case(value: Optional[str]) -> str:
    """'JOHN smith-jones' -> 'John Smith-Jones'."""
    if not value:
        return ''
    return _PROPER_CASE_RE.sub(lambda m: m.group(0).upper(), value.strip().lower())


def merge_budget_lines(records: List[BudgetRecord]) -> List[BudgetRecord]:
    """
    Collapse records that land on the same stored row.

    Two records collide when customer, country and product group match after
    proper-casing and the month is the same. The later record wins.
    """
    merged: Dict[tuple, BudgetRecord] = {}
    for record in records:
        key = DimensionKey(
            customer=to_proper_case(record.customer),
            country=to_proper_case(record.country),
            product_group=to_proper_case(record.product_group),
        )
        merged[(key.as_tuple(), record.month)] = record
    return list(merged.values())


class BudgetImportService:
    """
    Service orchestrating document validation and budget replacement.
    """

    def __init__(self, session: Session, validator: Optional[DocumentValidationService] = None):
        self.session = session
        self.validator = validator or DocumentValidationService()
        self.sales_rep_repo = SalesRepBudgetRepository(session)
        self.divisional_repo = DivisionalBudgetRepository(session)
        self.mapping_repo = MaterialMappingRepository(session)
        self.pricing = PricingResolver(session)
        self.batch_size = get_config().estimate_batch_size

    # =========================================================================
    # Document entry points
    # =========================================================================

    def import_sales_rep_document(
        self,
        html: str,
        filename: Optional[str] = None,
        current_division: Optional[str] = None,
    ) -> ImportOutcome:
        """
        Validate a sales rep budget document and replace the stored budget.

        Raises:
            DocumentError: If any validation stage fails (nothing is written)
            PersistenceError: If the replace transaction fails (rolled back)
        """
        validated = self.validator.validate(html, DocumentKind.SALES_REP_BUDGET, current_division)
        return self.replace_sales_rep_budget(validated, filename)

    def import_divisional_document(
        self,
        html: str,
        filename: Optional[str] = None,
        confirm_replace: bool = False,
        current_division: Optional[str] = None,
    ) -> ImportOutcome:
        """
        Validate a divisional budget document and replace the stored budget.

        When a budget already exists and confirm_replace is False, nothing is
        written and the outcome carries needs_confirmation=True.
        """
        validated = self.validator.validate(html, DocumentKind.DIVISIONAL_BUDGET, current_division)
        return self.replace_divisional_budget(validated, filename, confirm_replace=confirm_replace)

    # =========================================================================
    # Replace
    # =========================================================================

    def _enrich(self, division: str, records: List[BudgetRecord]) -> Dict[str, tuple]:
        mapping = self.mapping_repo.get_map(division)
        return {
            normalize_product_group(r.product_group): mapping.get(normalize_product_group(r.product_group), ('', ''))
            for r in records
        }

    def _merge(self, records: List[BudgetRecord]) -> tuple:
        merged = merge_budget_lines(records)
        duplicates = len(records) - len(merged)
        if not duplicates:
            return merged, []
        logger.warning(f"Merged {duplicates} duplicate budget lines (last value kept)")
        return merged, [f"{duplicates} duplicate budget line(s) merged; the last value in the file was kept"]

    def _price(self, division: str, budget_year: int, records: List[BudgetRecord]):
        pricing_year = PricingResolver.pricing_year_for(budget_year)
        pricing_map = self.pricing.resolve(division, pricing_year)
        totals = PricingResolver.compute_totals(pricing_map, records)
        warnings = []
        missing = PricingResolver.missing_groups(pricing_map, (r.product_group for r in records))
        if missing:
            warnings.append(
                f"Missing pricing data for {len(missing)} product group(s). "
                f"Revenue and margin are zero for: {', '.join(missing)}"
            )
        return pricing_year, totals, warnings

    def _write(self, operation: str, delete, rows: List[Dict], repo) -> tuple:
        try:
            deleted = delete()
            inserted = repo.insert_rows(rows, batch_size=self.batch_size)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.exception(f"{operation} import failed; rolled back")
            raise PersistenceError(operation, str(e)) from e
        return deleted, inserted

    def replace_sales_rep_budget(self, validated: ValidatedDocument, filename: Optional[str] = None) -> ImportOutcome:
        """Replace the stored budget for (division, sales rep, budget year)."""
        meta = validated.metadata
        division = meta.division.upper()
        sales_rep = to_proper_case(meta.owner)
        records, merge_warnings = self._merge(validated.records)

        existing = self.sales_rep_repo.get_existing_info(division, sales_rep, meta.budget_year)
        if existing.record_count:
            logger.info(
                f"Replacing {existing.record_count} budget rows for {division}/{sales_rep}/{meta.budget_year} "
                f"(last upload {existing.last_upload}, {existing.last_filename})"
            )

        materials = self._enrich(division, records)
        uploaded_at = datetime.now(timezone.utc)
        uploaded_filename = filename or f"{division}_{sales_rep}_{meta.budget_year}_import.html"
        rows = []
        for record in records:
            material, process = materials[normalize_product_group(record.product_group)]
            rows.append({
                'division': division,
                'budget_year': meta.budget_year,
                'month': record.month,
                'data_type': DataType.BUDGET.value,
                'sales_rep': sales_rep,
                'customer': to_proper_case(record.customer),
                'country': to_proper_case(record.country),
                'product_group': to_proper_case(record.product_group),
                'material': material,
                'process': process,
                'values_type': ValuesType.KGS.value,
                'value': record.value,
                'uploaded_filename': uploaded_filename,
                'uploaded_at': uploaded_at,
            })

        deleted, inserted = self._write(
            "budget",
            lambda: self.sales_rep_repo.delete_for_key(division, sales_rep, meta.budget_year),
            rows,
            self.sales_rep_repo,
        )
        logger.info(f"Deleted {deleted} and inserted {inserted} budget rows for {division}/{sales_rep}/{meta.budget_year}")
        invalidate_budget_cache()

        pricing_year, totals, warnings = self._price(division, meta.budget_year, records)
        warnings = merge_warnings + warnings
        return ImportOutcome(
            division=division,
            owner=sales_rep,
            budget_year=meta.budget_year,
            existing_budget=existing,
            deleted_count=deleted,
            inserted_counts={MetricSeries.QUANTITY: inserted},
            totals=totals,
            pricing_year=pricing_year,
            skipped_records=validated.skipped_count,
            errors=[e.to_dict() for e in validated.record_errors[:get_config().document_error_sample_size]],
            warnings=warnings,
        )

    def replace_divisional_budget(
        self,
        validated: ValidatedDocument,
        filename: Optional[str] = None,
        confirm_replace: bool = True,
    ) -> ImportOutcome:
        """Replace the stored divisional budget for (division, year)."""
        meta = validated.metadata
        division = meta.division.upper()
        records, merge_warnings = self._merge(validated.records)

        existing = self.divisional_repo.get_existing_info(division, meta.budget_year)
        if existing.record_count and not confirm_replace:
            logger.info(f"Divisional budget {division} {meta.budget_year} exists; confirmation required")
            return ImportOutcome(
                division=division,
                owner=None,
                budget_year=meta.budget_year,
                existing_budget=existing,
                deleted_count=0,
                inserted_counts={},
                totals=BudgetTotals(),
                pricing_year=PricingResolver.pricing_year_for(meta.budget_year),
                skipped_records=validated.skipped_count,
                needs_confirmation=True,
                records_to_import=len(records),
            )

        materials = self._enrich(division, records)
        uploaded_at = datetime.now(timezone.utc)
        uploaded_filename = filename or f"{division}_divisional_{meta.budget_year}_import.html"
        rows = []
        for record in records:
            material, process = materials[normalize_product_group(record.product_group)]
            rows.append({
                'division': division,
                'year': meta.budget_year,
                'month': record.month,
                'product_group': to_proper_case(record.product_group),
                'material': material,
                'process': process,
                'metric': ValuesType.KGS.value,
                'value': record.value,
                'uploaded_filename': uploaded_filename,
                'uploaded_at': uploaded_at,
            })

        deleted, inserted = self._write(
            "divisional budget",
            lambda: self.divisional_repo.delete_for_key(division, meta.budget_year),
            rows,
            self.divisional_repo,
        )
        logger.info(f"Deleted {deleted} and inserted {inserted} divisional rows for {division} {meta.budget_year}")
        invalidate_budget_cache()

        pricing_year, totals, warnings = self._price(division, meta.budget_year, records)
        warnings = merge_warnings + warnings
        return ImportOutcome(
            division=division,
            owner=None,
            budget_year=meta.budget_year,
            existing_budget=existing,
            deleted_count=deleted,
            inserted_counts={MetricSeries.QUANTITY: inserted},
            totals=totals,
            pricing_year=pricing_year,
            skipped_records=validated.skipped_count,
            errors=[e.to_dict() for e in validated.record_errors[:get_config().document_error_sample_size]],
            warnings=warnings,
            records_to_import=len(records),
        )

    def delete_divisional_budget(self, division: str, year: int) -> int:
        """Delete a stored divisional budget. Returns rows deleted."""
        division = division.upper()
        try:
            deleted = self.divisional_repo.delete_for_key(division, year)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Deleting divisional budget {division} {year} failed; rolled back")
            raise PersistenceError("divisional budget removal", str(e)) from e
        logger.info(f"Deleted {deleted} divisional budget records for {division} {year}")
        invalidate_budget_cache()
        return deleted

    # =========================================================================
    # Read side
    # =========================================================================

    def get_existing_sales_rep_budget(self, division: str, sales_rep: str, budget_year: int) -> ExistingBudgetInfo:
        return self.sales_rep_repo.get_existing_info(division, to_proper_case(sales_rep), budget_year)

    def get_sales_rep_summary(self, division: str, sales_rep: str, budget_year: int) -> Dict:
        """
        Stored budget for a sales rep with revenue and margin recomputed from pricing.

        Returns:
            Dict with per-month totals, per-product-group totals and grand totals
        """
        division = division.upper()
        rows = self.sales_rep_repo.get_for_key(division, to_proper_case(sales_rep), budget_year)
        records = [
            BudgetRecord(product_group=r.product_group, month=r.month, value=r.value,
                         customer=r.customer, country=r.country)
            for r in rows
        ]
        pricing_year = PricingResolver.pricing_year_for(budget_year)
        pricing_map = self.pricing.resolve(division, pricing_year)

        by_month: Dict[int, List[BudgetRecord]] = defaultdict(list)
        by_group: Dict[str, List[BudgetRecord]] = defaultdict(list)
        for record in records:
            by_month[record.month].append(record)
            by_group[record.product_group].append(record)

        return {
            'division': division,
            'sales_rep': to_proper_case(sales_rep),
            'budget_year': budget_year,
            'pricing_year': pricing_year,
            'record_count': len(records),
            'months': {
                month: PricingResolver.compute_totals(pricing_map, items).to_dict()
                for month, items in sorted(by_month.items())
            },
            'product_groups': {
                group: PricingResolver.compute_totals(pricing_map, items).to_dict()
                for group, items in sorted(by_group.items())
            },
            'totals': PricingResolver.compute_totals(pricing_map, records).to_dict(),
        }
