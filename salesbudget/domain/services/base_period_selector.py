"""
Base-Period Selector - chooses the historical months an estimate is based on.

Base period = months with ACTUAL data for (division, year) minus the
months being estimated. Computed fresh per request, never persisted.
"""
import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from salesbudget.infrastructure.repositories import SalesDataRepository
from salesbudget.domain.exceptions import NoBasePeriodAvailable, EstimateRequestInvalid

logger = logging.getLogger(__name__)


def normalize_target_months(target_months: Iterable[int]) -> List[int]:
    """
    Validate and sort the months to estimate.

    Raises:
        EstimateRequestInvalid: If empty or any month falls outside 1-12
    """
    months = []
    for month in target_months:
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            raise EstimateRequestInvalid(f"Invalid target month: {month!r} (must be 1-12)")
        months.append(month)
    if not months:
        raise EstimateRequestInvalid("At least one target month is required")
    return sorted(set(months))


def select_base_period(actual_months: Iterable[int], target_months: Iterable[int]) -> List[int]:
    """Actual months that are not being estimated, in calendar order."""
    excluded = set(target_months)
    return sorted(m for m in set(actual_months) if m not in excluded)


class BasePeriodSelector:
    """Resolves the base period against persisted ACTUAL data."""

    def __init__(self, session: Session):
        self.session = session
        self.sales_repo = SalesDataRepository(session)

    def select(self, division: str, year: int, target_months: Iterable[int]) -> List[int]:
        """
        Determine the base period for an estimate.

        Args:
            division: Division code
            year: Year being estimated
            target_months: Months to estimate

        Returns:
            Ordered base months

        Raises:
            NoBasePeriodAvailable: If no ACTUAL month remains after excluding targets
        """
        months = normalize_target_months(target_months)
        actual_months = self.sales_repo.get_actual_months(division, year)
        base_months = select_base_period(actual_months, months)

        if not base_months:
            logger.warning(
                f"No base period for {division} {year}: actual={actual_months}, targets={months}"
            )
            raise NoBasePeriodAvailable(division, year, months)

        logger.info(f"Base period for {division} {year}: {base_months} (targets {months})")
        return base_months
