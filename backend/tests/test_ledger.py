"""Tests for storage ledger impacts of withdrawals."""

from datetime import date
from decimal import Decimal

import pytest

from godown.middleware.exceptions import BusinessLogicError
from godown.schemas.billing import BillingCycle, RateTable, WithdrawalChange
from godown.services.ledger import (
    calculate_outflow_impact,
    calculate_reversal_impact,
    calculate_update_impact,
    plan_bulk_outflow,
    validate_withdrawal,
)


@pytest.mark.unit
@pytest.mark.ledger
class TestValidateWithdrawal:

    def test_accepts_valid_withdrawal(self, make_record):
        validate_withdrawal(make_record(bags_stored=100), 100, date(2024, 2, 1))

    def test_rejects_more_bags_than_stored(self, make_record):
        with pytest.raises(BusinessLogicError) as exc_info:
            validate_withdrawal(make_record(bags_stored=10), 11, date(2024, 2, 1))
        assert exc_info.value.error_code == "INSUFFICIENT_BAGS"
        assert exc_info.value.details == {"available": 10, "requested": 11}

    def test_rejects_date_before_start(self, make_record):
        with pytest.raises(BusinessLogicError) as exc_info:
            validate_withdrawal(make_record(), 1, date(2023, 12, 31))
        assert exc_info.value.error_code == "INVALID_WITHDRAWAL_DATE"

    def test_rejects_zero_bags(self, make_record):
        with pytest.raises(BusinessLogicError):
            validate_withdrawal(make_record(), 0, date(2024, 2, 1))


@pytest.mark.unit
@pytest.mark.ledger
class TestOutflowImpact:

    def test_full_withdrawal_closes_record(self, make_record):
        impact = calculate_outflow_impact(
            make_record(bags_stored=100), 100, Decimal("3600"), date(2024, 2, 1),
        )
        assert impact.updates.bags_stored == 0
        assert impact.updates.bags_out == 100
        assert impact.updates.total_rent_billed == 3600
        assert impact.updates.storage_end_date == date(2024, 2, 1)
        assert impact.is_closed is True

    def test_partial_withdrawal_leaves_record_open(self, make_record):
        impact = calculate_outflow_impact(
            make_record(bags_stored=100), 50, Decimal("1800"), date(2024, 2, 1),
        )
        assert impact.updates.bags_stored == 50
        assert impact.updates.bags_out == 50
        assert impact.is_closed is False
        assert "storage_end_date" not in impact.updates.model_dump(exclude_unset=True)

    def test_accumulates_rent_across_outflows(self, make_record):
        record = make_record(bags_stored=50, bags_out=50, total_rent_billed=1800)
        impact = calculate_outflow_impact(record, 50, Decimal("1800"), date(2024, 2, 1))
        assert impact.updates.total_rent_billed == 3600
        assert impact.updates.bags_out == 100
        assert impact.is_closed is True


@pytest.mark.unit
@pytest.mark.ledger
class TestReversalImpact:

    def test_reopens_closed_record(self, make_record):
        record = make_record(
            bags_stored=0,
            bags_out=100,
            total_rent_billed=3600,
            storage_end_date=date(2024, 2, 1),
            billing_cycle=BillingCycle.COMPLETED,
        )
        impact = calculate_reversal_impact(record, 100, Decimal("3600"))
        updates = impact.updates.model_dump(exclude_unset=True)

        assert updates["total_rent_billed"] == 0
        assert updates["bags_stored"] == 100
        assert updates["bags_out"] == 0
        assert updates["storage_end_date"] is None
        assert updates["billing_cycle"] == BillingCycle.SIX_MONTH_INITIAL

    def test_keeps_active_billing_cycle(self, make_record):
        record = make_record(
            bags_stored=50, bags_out=50, total_rent_billed=1800,
            billing_cycle=BillingCycle.ONE_YEAR_ROLLOVER,
        )
        impact = calculate_reversal_impact(record, 50, Decimal("1800"))
        assert impact.updates.bags_stored == 100
        assert impact.updates.bags_out == 0
        assert impact.updates.total_rent_billed == 0
        assert impact.updates.billing_cycle == BillingCycle.ONE_YEAR_ROLLOVER


@pytest.mark.unit
@pytest.mark.ledger
class TestUpdateImpact:

    def test_quantity_increase(self, make_record):
        record = make_record(bags_stored=50, bags_out=50, total_rent_billed=1800)
        impact = calculate_update_impact(
            record,
            WithdrawalChange(bags=50, rent=1800),
            WithdrawalChange(bags=100, rent=3600, withdrawal_date=date(2024, 2, 1)),
        )
        assert impact.updates.total_rent_billed == 3600
        assert impact.updates.bags_stored == 0
        assert impact.updates.bags_out == 100
        assert impact.updates.storage_end_date == date(2024, 2, 1)
        assert impact.is_closed is True

    def test_quantity_decrease_reopens(self, make_record):
        record = make_record(
            bags_stored=0,
            bags_out=100,
            total_rent_billed=3600,
            storage_end_date=date(2024, 2, 1),
            billing_cycle=BillingCycle.COMPLETED,
        )
        impact = calculate_update_impact(
            record,
            WithdrawalChange(bags=100, rent=3600),
            WithdrawalChange(bags=50, rent=1800, withdrawal_date=date(2024, 2, 1)),
        )
        updates = impact.updates.model_dump(exclude_unset=True)
        assert updates["total_rent_billed"] == 1800
        assert updates["bags_stored"] == 50
        assert updates["bags_out"] == 50
        assert updates["storage_end_date"] is None
        assert updates["billing_cycle"] == BillingCycle.SIX_MONTH_INITIAL
        assert impact.is_closed is False

    def test_rejects_edit_beyond_stock(self, make_record):
        record = make_record(bags_stored=10, bags_out=50)
        with pytest.raises(BusinessLogicError) as exc_info:
            calculate_update_impact(
                record,
                WithdrawalChange(bags=50, rent=0),
                WithdrawalChange(bags=70, rent=0),
            )
        assert exc_info.value.error_code == "INSUFFICIENT_BAGS"


@pytest.mark.unit
@pytest.mark.ledger
class TestBulkOutflowPlan:
    """FIFO withdrawal of a bag count across several records."""

    def test_consumes_records_in_order(self, make_record, paddy_rates):
        records = [
            make_record(start=date(2024, 1, 1), bags_stored=60, record_id="a"),
            make_record(start=date(2024, 5, 1), bags_stored=60, record_id="b"),
            make_record(start=date(2024, 6, 1), bags_stored=60, record_id="c"),
        ]
        plan = plan_bulk_outflow(records, 100, date(2024, 8, 1), paddy_rates)

        assert [op.record_id for op in plan.operations] == ["a", "b"]
        assert [op.bags for op in plan.operations] == [60, 40]
        # a: 7 months (1y rate), b: 3 months (6m rate)
        assert [op.months_stored for op in plan.operations] == [7, 3]
        assert plan.operations[0].rent == 60 * 55
        assert plan.operations[1].rent == 40 * 36
        assert plan.total_rent == 60 * 55 + 40 * 36
        assert plan.operations[0].impact.is_closed is True
        assert plan.operations[1].impact.updates.bags_stored == 20

    def test_splits_payment_by_rent(self, make_record):
        records = [
            make_record(bags_stored=10, record_id="a"),
            make_record(bags_stored=20, record_id="b"),
        ]
        plan = plan_bulk_outflow(
            records, 30, date(2024, 2, 1), RateTable(price_6m=10, price_1y=10),
            amount_paid_now=Decimal("100"),
        )
        payments = [op.payment for op in plan.operations]
        assert payments == [Decimal("33.33"), Decimal("66.67")]
        assert sum(payments) == 100

    def test_payment_goes_to_first_record_when_no_rent(self, make_record):
        records = [make_record(bags_stored=5), make_record(bags_stored=5)]
        plan = plan_bulk_outflow(
            records, 10, date(2024, 2, 1), RateTable(price_6m=0, price_1y=0),
            amount_paid_now=50,
        )
        assert [op.payment for op in plan.operations] == [50, 0]

    def test_rounding_leftover_never_goes_negative(self, make_record):
        # c has been stored past six months, where this table charges nothing
        records = [
            make_record(start=date(2024, 1, 1), bags_stored=1, record_id="a"),
            make_record(start=date(2024, 1, 1), bags_stored=1, record_id="b"),
            make_record(start=date(2023, 1, 1), bags_stored=1, record_id="c"),
        ]
        plan = plan_bulk_outflow(
            records, 3, date(2024, 2, 1), RateTable(price_6m=1, price_1y=0),
            amount_paid_now=Decimal("0.01"),
        )
        payments = [op.payment for op in plan.operations]
        assert [op.rent for op in plan.operations] == [1, 1, 0]
        assert payments == [Decimal("0.01"), 0, 0]
        assert all(p >= 0 for p in payments)

    def test_leftover_cents_go_to_largest_rent(self, make_record):
        records = [make_record(bags_stored=1, record_id=str(i)) for i in range(5)]
        records.append(make_record(bags_stored=2, record_id="big"))
        plan = plan_bulk_outflow(
            records, 7, date(2024, 2, 1), RateTable(price_6m=1, price_1y=1),
            amount_paid_now=Decimal("0.07"),
        )
        payments = [op.payment for op in plan.operations]
        assert all(p >= 0 for p in payments)
        assert sum(payments) == Decimal("0.07")
        assert payments[-1] == max(payments)

    def test_rejects_record_started_after_withdrawal(self, make_record, paddy_rates):
        records = [
            make_record(start=date(2024, 1, 1), bags_stored=1, record_id="a"),
            make_record(start=date(2024, 7, 1), bags_stored=1, record_id="late"),
        ]
        with pytest.raises(BusinessLogicError) as exc_info:
            plan_bulk_outflow(records, 2, date(2024, 2, 1), paddy_rates)
        assert exc_info.value.error_code == "INVALID_WITHDRAWAL_DATE"

    def test_unconsumed_later_record_is_not_checked(self, make_record, paddy_rates):
        records = [
            make_record(start=date(2024, 1, 1), bags_stored=5, record_id="a"),
            make_record(start=date(2024, 7, 1), bags_stored=5, record_id="late"),
        ]
        plan = plan_bulk_outflow(records, 5, date(2024, 2, 1), paddy_rates)
        assert [op.record_id for op in plan.operations] == ["a"]

    def test_skips_empty_records(self, make_record, paddy_rates):
        records = [make_record(bags_stored=0, record_id="empty"), make_record(bags_stored=5, record_id="full")]
        plan = plan_bulk_outflow(records, 5, date(2024, 2, 1), paddy_rates)
        assert [op.record_id for op in plan.operations] == ["full"]

    def test_rejects_more_than_available(self, make_record, paddy_rates):
        with pytest.raises(BusinessLogicError) as exc_info:
            plan_bulk_outflow([make_record(bags_stored=5)], 6, date(2024, 2, 1), paddy_rates)
        assert exc_info.value.error_code == "INSUFFICIENT_BAGS"

    def test_rejects_no_records(self, paddy_rates):
        with pytest.raises(BusinessLogicError) as exc_info:
            plan_bulk_outflow([], 1, date(2024, 2, 1), paddy_rates)
        assert exc_info.value.error_code == "NO_ACTIVE_RECORDS"
