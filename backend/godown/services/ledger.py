"""Storage record ledger impacts of withdrawals (outflows).

Each calculate_* function returns the fields a caller must write back to a
storage record after an outflow is recorded, reverted or edited.  Nothing is
persisted here.

A record is closed when its last bag leaves (bags_stored reaches 0); closing
sets storage_end_date.  Reverting or shrinking an outflow reopens it.
"""

import logging
from datetime import date
from decimal import ROUND_DOWN, Decimal

from godown.middleware.exceptions import BusinessLogicError
from godown.schemas.billing import (
    BillingCycle,
    BulkOutflowOperation,
    BulkOutflowPlan,
    LedgerImpact,
    RateTable,
    RecordUpdate,
    StorageRecordSnapshot,
    WithdrawalChange,
)
from godown.services.rent import calculate_final_rent

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
TWOPLACES = Decimal("0.01")


def _reopened_cycle(record: StorageRecordSnapshot) -> BillingCycle:
    if record.billing_cycle == BillingCycle.COMPLETED:
        return BillingCycle.SIX_MONTH_INITIAL
    return record.billing_cycle


def validate_withdrawal(
    record: StorageRecordSnapshot,
    bags: int,
    withdrawal_date: date,
) -> None:
    """Reject withdrawals the record cannot satisfy."""
    if bags <= 0:
        raise BusinessLogicError(
            "Bags to withdraw must be a positive number.",
            error_code="INVALID_BAG_COUNT",
        )
    if bags > record.bags_stored:
        raise BusinessLogicError(
            "Cannot withdraw more bags than are in storage.",
            error_code="INSUFFICIENT_BAGS",
            details={"available": record.bags_stored, "requested": bags},
        )
    if withdrawal_date < record.storage_start_date:
        raise BusinessLogicError(
            "Withdrawal date cannot be before storage start date.",
            error_code="INVALID_WITHDRAWAL_DATE",
        )


def calculate_outflow_impact(
    record: StorageRecordSnapshot,
    bags: int,
    rent: Decimal,
    withdrawal_date: date,
) -> LedgerImpact:
    bags_stored = record.bags_stored - bags
    updates = RecordUpdate(
        bags_stored=bags_stored,
        bags_out=record.bags_out + bags,
        total_rent_billed=record.total_rent_billed + rent,
    )

    is_closed = bags_stored <= 0
    if is_closed:
        updates.storage_end_date = withdrawal_date

    return LedgerImpact(updates=updates, is_closed=is_closed)


def calculate_reversal_impact(
    record: StorageRecordSnapshot,
    bags: int,
    rent: Decimal,
) -> LedgerImpact:
    """Undo a recorded outflow of ``bags`` bags billed at ``rent``."""
    updates = RecordUpdate(
        bags_stored=record.bags_stored + bags,
        bags_out=max(0, record.bags_out - bags),
        total_rent_billed=max(ZERO, record.total_rent_billed - rent),
        storage_end_date=None,
        billing_cycle=_reopened_cycle(record),
    )
    return LedgerImpact(updates=updates, is_closed=False)


def calculate_update_impact(
    record: StorageRecordSnapshot,
    old: WithdrawalChange,
    new: WithdrawalChange,
) -> LedgerImpact:
    """Re-apply an edited outflow: the record moves by the difference only."""
    bag_delta = new.bags - old.bags
    rent_delta = new.rent - old.rent

    bags_stored = record.bags_stored - bag_delta
    if bags_stored < 0:
        raise BusinessLogicError(
            "Cannot withdraw more bags than are in storage.",
            error_code="INSUFFICIENT_BAGS",
            details={"available": record.bags_stored + old.bags, "requested": new.bags},
        )

    updates = RecordUpdate(
        bags_stored=bags_stored,
        bags_out=record.bags_out + bag_delta,
        total_rent_billed=max(ZERO, record.total_rent_billed + rent_delta),
    )

    is_closed = bags_stored == 0
    if is_closed:
        updates.storage_end_date = new.withdrawal_date or record.storage_end_date
    else:
        updates.storage_end_date = None
        updates.billing_cycle = _reopened_cycle(record)

    return LedgerImpact(updates=updates, is_closed=is_closed)


def _split_payment(rents: list[Decimal], amount_paid: Decimal) -> list[Decimal]:
    """Split a payment proportionally to each slice's rent (2 dp).

    Shares are rounded down and the leftover cents go to the slice with the
    largest rent, so no share is ever negative.
    """
    if not rents:
        return []
    if amount_paid <= 0:
        return [ZERO for _ in rents]

    total_rent = sum(rents, ZERO)
    if total_rent == 0:
        # nothing billed, the whole payment lands on the first record
        return [amount_paid] + [ZERO for _ in rents[1:]]

    shares = [
        (rent * amount_paid / total_rent).quantize(TWOPLACES, rounding=ROUND_DOWN)
        for rent in rents
    ]
    largest = max(range(len(rents)), key=rents.__getitem__)
    shares[largest] += amount_paid - sum(shares, ZERO)
    return shares


def plan_bulk_outflow(
    records: list[StorageRecordSnapshot],
    total_bags: int,
    withdrawal_date: date,
    rate_table: RateTable,
    amount_paid_now: Decimal = ZERO,
) -> BulkOutflowPlan:
    """Withdraw ``total_bags`` across ``records`` oldest-first.

    Records are consumed in the order given.  Each slice is priced with its
    own storage duration, and any payment collected at the gate is spread
    over the slices by rent.  A consumed record that starts after the
    withdrawal date rejects the whole plan.
    """
    if not records:
        raise BusinessLogicError(
            "No active records found for this commodity (or selection).",
            error_code="NO_ACTIVE_RECORDS",
        )

    total_available = sum(r.bags_stored for r in records)
    if total_bags > total_available:
        raise BusinessLogicError(
            f"Requested {total_bags} bags, but only {total_available} are available.",
            error_code="INSUFFICIENT_BAGS",
            details={"available": total_available, "requested": total_bags},
        )

    slices = []
    bags_remaining = total_bags
    for record in records:
        if bags_remaining <= 0:
            break
        bags = min(record.bags_stored, bags_remaining)
        if bags <= 0:
            continue
        validate_withdrawal(record, bags, withdrawal_date)
        slices.append((record, bags, calculate_final_rent(record, withdrawal_date, bags, rate_table)))
        bags_remaining -= bags

    amount_paid_now = Decimal(str(amount_paid_now))
    payments = _split_payment([result.rent for _, _, result in slices], amount_paid_now)

    operations = []
    for (record, bags, result), payment in zip(slices, payments):
        operations.append(BulkOutflowOperation(
            record_id=record.record_id,
            record_number=record.record_number,
            bags=bags,
            months_stored=result.months_stored,
            rent=result.rent,
            payment=payment,
            impact=calculate_outflow_impact(record, bags, result.rent, withdrawal_date),
        ))

    total_rent = sum((op.rent for op in operations), ZERO)
    logger.info(
        "Planned bulk outflow of %d bags across %d record(s), rent %s",
        total_bags, len(operations), total_rent,
    )

    return BulkOutflowPlan(
        withdrawal_date=withdrawal_date,
        total_bags=total_bags,
        total_rent=total_rent,
        amount_paid_now=amount_paid_now,
        operations=operations,
    )
