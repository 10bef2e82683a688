"""
Unit Tests for the estimate engine.

Tests business rules:
- Base period = ACTUAL months minus target months
- Monthly average per metric series (rounded half up)
- Proportional distribution conserves each month's total
- Zero-history dimensions get explicit zero rows
- Estimate replacement is transactional
"""
import warnings

import pytest

import pandas as pd
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from salesbudget.models import Base, SalesDataRow, DataType
from salesbudget.infrastructure.cache import BudgetCacheInvalidator
from salesbudget.infrastructure.repositories import SalesDataRepository, DIMENSION_COLUMNS
from salesbudget.domain.entities import MetricSeries
from salesbudget.domain.exceptions import NoBasePeriodAvailable, EstimateRequestInvalid, PersistenceError
from salesbudget.domain.services import (
    BasePeriodSelector,
    DistributionService,
    normalize_target_months,
    select_base_period,
    monthly_averages,
    dimension_totals,
    dimension_shares,
    distribute,
)
from salesbudget.domain.services.distribution_service import round_half_up


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_db():
    """Create a test database with fresh tables for each test."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()


def add_actual(session, month, values_type, value, division="FP", year=2025, **dims):
    row = SalesDataRow(
        division=division,
        year=year,
        month=month,
        data_type=DataType.ACTUAL.value,
        values_type=values_type,
        value=value,
        **{c: dims.get(c, "") for c in DIMENSION_COLUMNS},
    )
    session.add(row)
    return row


@pytest.fixture
def two_customer_actuals(test_db):
    """
    Months 1-6 of 2025 for division FP.

    Customer A: 5,000 KGS/month (30,000 total, 25%)
    Customer B: 15,000 KGS/month (90,000 total, 75%)
    Both: AMOUNT and MORM at 10x / 2x their KGS
    """
    session = test_db
    for month in range(1, 7):
        for customer, kgs in (("Customer A", 5000), ("Customer B", 15000)):
            dims = dict(sales_rep="Jane Doe", customer=customer, country="UAE",
                        product_group="Shrink Film", material="PE", process="Printed")
            add_actual(session, month, "KGS", kgs, **dims)
            add_actual(session, month, "AMOUNT", kgs * 10, **dims)
            add_actual(session, month, "MORM", kgs * 2, **dims)
    session.commit()
    return session


@pytest.fixture(autouse=True)
def reset_cache_callbacks():
    BudgetCacheInvalidator.clear()
    yield
    BudgetCacheInvalidator.clear()


def _frame(rows):
    records = []
    for dims, month, values_type, value in rows:
        record = {c: "" for c in DIMENSION_COLUMNS}
        record.update(dims)
        record.update({'month': month, 'values_type': values_type, 'value': value})
        records.append(record)
    return pd.DataFrame(records)


# =============================================================================
# Base Period Tests
# =============================================================================

class TestBasePeriod:
    """Tests for base period selection."""

    def test_normalize_target_months_sorts_and_dedupes(self):
        assert normalize_target_months([12, 7, 7, 8]) == [7, 8, 12]

    @pytest.mark.parametrize("months", [[], [0], [13], [True], ["7"]])
    def test_normalize_target_months_rejects_invalid(self, months):
        with pytest.raises(EstimateRequestInvalid):
            normalize_target_months(months)

    def test_select_base_period_excludes_targets(self):
        assert select_base_period([1, 2, 3, 4, 5, 6], [5, 6, 7]) == [1, 2, 3, 4]

    def test_selector_uses_actual_months(self, two_customer_actuals):
        selector = BasePeriodSelector(two_customer_actuals)
        assert selector.select("FP", 2025, [6, 7]) == [1, 2, 3, 4, 5]

    def test_selector_matches_division_case_insensitively(self, two_customer_actuals):
        selector = BasePeriodSelector(two_customer_actuals)
        assert selector.select("fp", 2025, [7]) == [1, 2, 3, 4, 5, 6]

    def test_no_base_period_raises(self, two_customer_actuals):
        selector = BasePeriodSelector(two_customer_actuals)
        with pytest.raises(NoBasePeriodAvailable) as exc_info:
            selector.select("FP", 2025, [1, 2, 3, 4, 5, 6])
        assert exc_info.value.code == "NO_BASE_PERIOD"
        assert exc_info.value.details['target_months'] == [1, 2, 3, 4, 5, 6]

    def test_no_actual_data_raises(self, test_db):
        with pytest.raises(NoBasePeriodAvailable):
            BasePeriodSelector(test_db).select("FP", 2025, [7])


# =============================================================================
# Calculation Step Tests
# =============================================================================

class TestCalculationSteps:
    """Tests for the pure distribution functions."""

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.4999) == 2

    def test_monthly_averages(self):
        frame = _frame([
            ({}, 1, "KGS", 3), ({}, 2, "KGS", 2),
            ({}, 1, "AMOUNT", 100),
        ])
        averages = monthly_averages(frame, 2)
        assert averages[MetricSeries.QUANTITY] == 3  # 2.5 rounds half up
        assert averages[MetricSeries.REVENUE] == 50
        assert averages[MetricSeries.MARGIN] == 0

    def test_monthly_averages_rejects_zero_months(self):
        with pytest.raises(ValueError):
            monthly_averages(_frame([]), 0)

    def test_dimension_totals_fills_missing_series(self):
        frame = _frame([
            ({'customer': 'A'}, 1, "KGS", 10),
            ({'customer': 'B'}, 1, "AMOUNT", 40),
        ])
        totals = dimension_totals(frame)
        assert list(totals.columns) == ["KGS", "AMOUNT", "MORM"]
        assert len(totals) == 2
        assert totals["KGS"].sum() == 10
        assert totals["MORM"].sum() == 0

    def test_dimension_totals_ignores_unknown_series(self):
        frame = _frame([({'customer': 'A'}, 1, "PCS", 10)])
        totals = dimension_totals(frame)
        assert totals.empty

    def test_shares_zero_when_series_total_not_positive(self):
        frame = _frame([
            ({'customer': 'A'}, 1, "KGS", 10),
            ({'customer': 'B'}, 1, "KGS", 30),
        ])
        shares = dimension_shares(dimension_totals(frame))
        assert shares["KGS"].tolist() == [0.25, 0.75]
        assert shares["AMOUNT"].tolist() == [0.0, 0.0]

    def test_distribute_emits_full_grid(self):
        frame = _frame([
            ({'customer': 'A'}, 1, "KGS", 10),
            ({'customer': 'B'}, 1, "AMOUNT", 30),
        ])
        shares = dimension_shares(dimension_totals(frame))
        month_totals = {
            7: {MetricSeries.QUANTITY: 100, MetricSeries.REVENUE: 60, MetricSeries.MARGIN: 0},
            8: {MetricSeries.QUANTITY: 100, MetricSeries.REVENUE: 60, MetricSeries.MARGIN: 0},
        }
        result = distribute(shares, month_totals)
        # 2 dimensions x 2 months x 3 series
        assert len(result) == 12
        b_kgs = result[(result.customer == 'B') & (result.values_type == 'KGS')]
        assert b_kgs['value'].tolist() == [0.0, 0.0]


# =============================================================================
# Service Tests
# =============================================================================

class TestDistributionService:
    """Tests for DistributionService against the database."""

    def test_end_to_end_share(self, two_customer_actuals):
        """Base 1-6, 120,000 KGS total: average 20,000; a 25% customer gets 5,000."""
        service = DistributionService(two_customer_actuals)
        result = service.calculate_estimate("FP", 2025, [7])
        assert result.base_period_months == [1, 2, 3, 4, 5, 6]
        assert result.estimates[0].totals[MetricSeries.QUANTITY] == 20000

        _, distributed, dimension_count = service.build_estimate_rows("FP", 2025, [7])
        assert dimension_count == 2
        a_kgs = distributed[(distributed.customer == "Customer A") & (distributed.values_type == "KGS")]
        assert a_kgs['value'].iloc[0] == pytest.approx(5000)

    def test_share_conservation(self, test_db):
        session = test_db
        values = [1234.5, 77.25, 9999.0, 0.5, 321.0]
        for month in (1, 2, 3):
            for i, value in enumerate(values):
                dims = dict(customer=f"Customer {i}", product_group=f"PG {i % 2}")
                add_actual(session, month, "KGS", value * month, **dims)
                add_actual(session, month, "AMOUNT", value * 3.7, **dims)
                add_actual(session, month, "MORM", value * 0.9 + month, **dims)
        session.commit()

        service = DistributionService(session)
        result = service.calculate_estimate("FP", 2025, [4, 5])
        _, distributed, _ = service.build_estimate_rows("FP", 2025, [4, 5])

        for estimate in result.estimates:
            for series in MetricSeries:
                expected = estimate.totals[series]
                actual = distributed[
                    (distributed.month == estimate.month) & (distributed.values_type == series.value)
                ]['value'].sum()
                assert actual == pytest.approx(expected, rel=1e-6)

    def test_zero_history_dimension_gets_zero_row(self, two_customer_actuals):
        session = two_customer_actuals
        add_actual(session, 3, "AMOUNT", 500, customer="Customer C", product_group="Labels")
        session.commit()

        _, distributed, dimension_count = DistributionService(session).build_estimate_rows("FP", 2025, [7])
        assert dimension_count == 3
        c_rows = distributed[distributed.customer == "Customer C"]
        assert len(c_rows) == 3
        kgs = c_rows[c_rows.values_type == "KGS"]['value'].iloc[0]
        assert kgs == 0.0

    def test_record_count_is_amount_rows_per_base_month(self, two_customer_actuals):
        result = DistributionService(two_customer_actuals).calculate_estimate("FP", 2025, [7])
        assert result.estimates[0].record_count == 2

    def test_save_estimate_inserts_full_grid(self, two_customer_actuals):
        session = two_customer_actuals
        service = DistributionService(session, batch_size=4)
        result = service.save_estimate("fp", 2025, [7, 8], actor="planner")

        assert result.division == "FP"
        assert result.records_deleted == 0
        assert result.records_inserted == 2 * 2 * 3

        rows = session.query(SalesDataRow).filter(SalesDataRow.data_type == DataType.ESTIMATE.value).all()
        assert len(rows) == 12
        assert {r.uploaded_by for r in rows} == {"planner"}
        assert {r.source_sheet for r in rows} == {"Calculated"}
        a_kgs = [r for r in rows if r.customer == "Customer A" and r.values_type == "KGS" and r.month == 7]
        assert a_kgs[0].value == pytest.approx(5000)

    def test_save_estimate_replaces_previous(self, two_customer_actuals):
        session = two_customer_actuals
        service = DistributionService(session)
        service.save_estimate("FP", 2025, [7])
        result = service.save_estimate("FP", 2025, [7])

        assert result.records_deleted == 6
        assert SalesDataRepository(session).count_estimates("FP", 2025) == 6

    def test_save_estimate_with_caller_totals(self, two_customer_actuals):
        session = two_customer_actuals
        totals = {7: {MetricSeries.QUANTITY: 40000, MetricSeries.REVENUE: 0, MetricSeries.MARGIN: 0}}
        DistributionService(session).save_estimate("FP", 2025, [7], estimate_totals=totals)

        row = session.query(SalesDataRow).filter(
            SalesDataRow.data_type == DataType.ESTIMATE.value,
            SalesDataRow.customer == "Customer B",
            SalesDataRow.values_type == "KGS",
        ).one()
        assert row.value == pytest.approx(30000)

    def test_caller_totals_must_cover_every_month(self, two_customer_actuals):
        totals = {7: {MetricSeries.QUANTITY: 1}}
        with pytest.raises(EstimateRequestInvalid):
            DistributionService(two_customer_actuals).save_estimate("FP", 2025, [7, 8], estimate_totals=totals)

    def test_no_base_period_writes_nothing(self, two_customer_actuals):
        session = two_customer_actuals
        with pytest.raises(NoBasePeriodAvailable):
            DistributionService(session).save_estimate("FP", 2025, [1, 2, 3, 4, 5, 6])
        assert SalesDataRepository(session).count_estimates("FP", 2025) == 0

    def test_failed_insert_rolls_back(self, two_customer_actuals, monkeypatch):
        session = two_customer_actuals
        service = DistributionService(session)
        service.save_estimate("FP", 2025, [7])

        def boom(rows, batch_size=500):
            raise RuntimeError("disk full")

        monkeypatch.setattr(service.sales_repo, "insert_estimates", boom)
        with pytest.raises(PersistenceError):
            service.save_estimate("FP", 2025, [7])
        assert SalesDataRepository(session).count_estimates("FP", 2025) == 6

    def test_save_invalidates_cache(self, two_customer_actuals):
        patterns = []
        BudgetCacheInvalidator.register(patterns.append)
        DistributionService(two_customer_actuals).save_estimate("FP", 2025, [7])
        assert patterns == ["budget:*"]

    def test_cache_failure_does_not_fail_save(self, two_customer_actuals):
        def broken(pattern):
            raise ConnectionError("cache down")

        BudgetCacheInvalidator.register(broken)
        result = DistributionService(two_customer_actuals).save_estimate("FP", 2025, [7])
        assert result.records_inserted == 6

    def test_clear_estimates(self, two_customer_actuals):
        session = two_customer_actuals
        service = DistributionService(session)
        service.save_estimate("FP", 2025, [7, 8])
        assert service.clear_estimates("FP", 2025) == 12
        assert service.clear_estimates("FP", 2025) == 0

    def test_actual_years_most_recent_first(self, two_customer_actuals):
        session = two_customer_actuals
        add_actual(session, 1, "KGS", 1, year=2023)
        add_actual(session, 1, "KGS", 1, year=2024, division="HC")
        session.commit()
        assert DistributionService(session).get_actual_years("FP") == [2025, 2023]


# =============================================================================
# Batched Write Tests
# =============================================================================

def count_inserts(session):
    """Attach a statement counter for INSERTs on the session's engine."""
    statements = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("INSERT"):
            statements.append(statement)

    event.listen(session.get_bind(), "before_cursor_execute", before_cursor_execute)
    return statements


class TestBatchedInserts:
    """Estimate rows are written at most batch_size rows per INSERT."""

    def test_bulk_insert_splits_into_batches(self, test_db):
        repo = SalesDataRepository(test_db)
        rows = [
            dict(division="FP", year=2025, month=1, data_type="ESTIMATE",
                 customer=f"Customer {i}", values_type="KGS", value=float(i))
            for i in range(7)
        ]
        statements = count_inserts(test_db)
        assert repo.bulk_insert(rows, batch_size=3) == 7
        test_db.commit()

        assert len(statements) == 3
        assert repo.count_estimates("FP", 2025) == 7

    def test_bulk_insert_with_no_rows(self, test_db):
        statements = count_inserts(test_db)
        assert SalesDataRepository(test_db).bulk_insert([], batch_size=10) == 0
        assert statements == []

    @pytest.mark.parametrize("batch_size", [0, -5])
    def test_bulk_insert_rejects_non_positive_batch_size(self, test_db, batch_size):
        with pytest.raises(ValueError):
            SalesDataRepository(test_db).bulk_insert([{"division": "FP"}], batch_size=batch_size)

    def test_save_estimate_respects_batch_size(self, test_db):
        for i in range(100):
            add_actual(test_db, 1, "KGS", 10 + i, customer=f"Customer {i:03d}")
            add_actual(test_db, 2, "KGS", 10 + i, customer=f"Customer {i:03d}")
        test_db.commit()

        statements = count_inserts(test_db)
        result = DistributionService(test_db, batch_size=500).save_estimate("FP", 2025, [3, 4, 5, 6])

        assert result.records_inserted == 100 * 4 * 3
        assert len(statements) == 3
        assert SalesDataRepository(test_db).count_estimates("FP", 2025) == 1200


# =============================================================================
# NULL Dimension Tests
# =============================================================================

class TestNullDimensions:
    """NULL dimension values group together and are written back as NULL."""

    def test_null_dimensions_stay_null(self, two_customer_actuals):
        session = two_customer_actuals
        for month in range(1, 7):
            add_actual(session, month, "KGS", 20000, sales_rep="Jane Doe", customer=None,
                       country=None, product_group="Shrink Film", material=None, process=None)
        session.commit()

        DistributionService(session).save_estimate("FP", 2025, [7])
        rows = session.query(SalesDataRow).filter(
            SalesDataRow.data_type == DataType.ESTIMATE.value,
            SalesDataRow.customer.is_(None),
        ).all()
        assert len(rows) == 3
        assert {r.country for r in rows} == {None}
        assert {r.sales_rep for r in rows} == {"Jane Doe"}
        kgs = [r for r in rows if r.values_type == "KGS"][0]
        assert kgs.value == pytest.approx(20000)  # half of the 40,000 monthly average

    def test_empty_strings_are_not_turned_into_null(self, two_customer_actuals):
        session = two_customer_actuals
        DistributionService(session).save_estimate("FP", 2025, [7])
        assert session.query(SalesDataRow).filter(
            SalesDataRow.data_type == DataType.ESTIMATE.value,
            SalesDataRow.customer.is_(None),
        ).count() == 0

    def test_integer_values_group_without_warnings(self):
        frame = _frame([
            ({"customer": "A"}, 1, "KGS", 10),
            ({"customer": "B"}, 1, "AMOUNT", 20),
        ])
        with warnings.catch_warnings():
            warnings.simplefilter("error", FutureWarning)
            totals = dimension_totals(frame)
        assert totals["KGS"].sum() == 10
        assert totals["AMOUNT"].sum() == 20
