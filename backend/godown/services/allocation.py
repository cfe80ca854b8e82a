"""Payment allocation across a customer's outstanding storage records.

`allocate_fifo` is the core: it walks the records in the order given and
applies as much of the payment as each record can take before moving on.
It never sorts; callers put the oldest record first (see
`pending_allocation_inputs`).  Money left over after every record is paid
off is simply not allocated.

`plan_bulk_payment` sits on top of it for the bulk payment workflow and
enforces the rules a recorded payment must satisfy (no overpayment, manual
splits that add up, ...).
"""

import logging
from decimal import Decimal
from typing import Iterable, Literal

from godown.config import settings
from godown.middleware.exceptions import BusinessLogicError
from godown.schemas.billing import (
    AllocationInput,
    AllocationOutput,
    AllocationSummary,
    BulkPaymentPlan,
    ManualAllocation,
    RecordDues,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def allocate_fifo(
    records: list[AllocationInput],
    total_amount: Decimal,
) -> list[AllocationOutput]:
    """Distribute ``total_amount`` over ``records`` in list order.

    Returns exactly one entry per record, in the same order, including
    records that received nothing.
    """
    allocations = []
    remaining_amount = Decimal(str(total_amount))

    for record in records:
        if remaining_amount <= 0:
            allocations.append(AllocationOutput(
                record_id=record.record_id,
                record_number=record.record_number,
                amount=ZERO,
                remaining=record.total_due,
            ))
            continue

        allocate_to_this = min(remaining_amount, record.total_due)
        allocations.append(AllocationOutput(
            record_id=record.record_id,
            record_number=record.record_number,
            amount=allocate_to_this,
            remaining=record.total_due - allocate_to_this,
        ))
        remaining_amount -= allocate_to_this

    return allocations


def allocate_payment_fifo(
    records: list[AllocationInput],
    total_amount: Decimal,
) -> AllocationSummary:
    """FIFO allocation plus the allocated / unallocated split."""
    allocations = allocate_fifo(records, total_amount)
    allocated = sum((a.amount for a in allocations), ZERO)
    return AllocationSummary(
        allocations=allocations,
        allocated=allocated,
        unallocated=max(ZERO, Decimal(str(total_amount)) - allocated),
    )


# ── Outstanding dues ─────────────────────────────────────────

def compute_total_due(record: RecordDues) -> Decimal:
    """Rent billed plus hamali, less every payment that was not deleted."""
    total_billed = record.total_rent_billed + record.hamali_payable
    total_paid = sum(
        (p.amount for p in record.payments if not p.is_deleted),
        ZERO,
    )
    return max(ZERO, total_billed - total_paid)


def pending_allocation_inputs(records: Iterable[RecordDues]) -> list[AllocationInput]:
    """Active records with something due, oldest storage start first."""
    pending = []
    for record in records:
        if record.is_deleted or record.storage_end_date is not None:
            continue
        total_due = compute_total_due(record)
        if total_due <= 0:
            continue
        pending.append(AllocationInput(
            record_id=record.record_id,
            record_number=record.record_number or record.record_id[:8],
            total_due=total_due,
            storage_start_date=record.storage_start_date,
        ))

    pending.sort(key=lambda r: r.storage_start_date)
    return pending


# ── Bulk payment ─────────────────────────────────────────────

def _manual_allocations(
    records: list[AllocationInput],
    total_amount: Decimal,
    manual: list[ManualAllocation],
    tolerance: Decimal,
) -> list[AllocationOutput]:
    by_id = {r.record_id: r for r in records}
    allocations = []
    seen = set()

    for item in manual:
        if item.record_id in seen:
            raise BusinessLogicError(
                f"Record {item.record_id} appears more than once in the allocation",
                error_code="DUPLICATE_ALLOCATION",
            )
        seen.add(item.record_id)

        record = by_id.get(item.record_id)
        if record is None:
            raise BusinessLogicError(
                f"Record {item.record_id} has no pending dues",
                error_code="UNKNOWN_RECORD",
            )
        if item.amount > record.total_due:
            raise BusinessLogicError(
                f"Allocation of {settings.currency_symbol}{item.amount} exceeds "
                f"the {settings.currency_symbol}{record.total_due} due on record {record.record_number}",
                error_code="ALLOCATION_EXCEEDS_DUE",
            )
        allocations.append(AllocationOutput(
            record_id=record.record_id,
            record_number=record.record_number,
            amount=item.amount,
            remaining=record.total_due - item.amount,
        ))

    allocated = sum((a.amount for a in allocations), ZERO)
    if abs(allocated - total_amount) > tolerance:
        raise BusinessLogicError(
            f"Allocation sum ({settings.currency_symbol}{allocated}) does not match "
            f"total payment ({settings.currency_symbol}{total_amount}).",
            error_code="ALLOCATION_MISMATCH",
        )
    return allocations


def plan_bulk_payment(
    records: list[AllocationInput],
    total_amount: Decimal,
    strategy: Literal["fifo", "manual"] = "fifo",
    manual_allocations: list[ManualAllocation] | None = None,
    tolerance: Decimal | None = None,
) -> BulkPaymentPlan:
    """Work out how one customer payment is split across pending records.

    Raises:
        BusinessLogicError when there is nothing to pay, when a FIFO payment
        exceeds the total due, or when a manual split is inconsistent.
    """
    total_amount = Decimal(str(total_amount))
    if tolerance is None:
        tolerance = settings.payment_tolerance

    if not records:
        raise BusinessLogicError(
            "No pending dues found for this customer.",
            error_code="NO_PENDING_DUES",
        )

    if strategy == "manual":
        allocations = _manual_allocations(
            records, total_amount, manual_allocations or [], tolerance,
        )
    else:
        summary = allocate_payment_fifo(records, total_amount)
        if summary.unallocated > tolerance:
            raise BusinessLogicError(
                f"Payment amount ({settings.currency_symbol}{total_amount}) exceeds "
                f"total dues ({settings.currency_symbol}{summary.allocated}).",
                error_code="PAYMENT_EXCEEDS_DUES",
                details={"unallocated": str(summary.unallocated)},
            )
        allocations = summary.allocations

    allocations = [a for a in allocations if a.amount > 0]
    logger.info(
        "Planned %s payment of %s across %d record(s)",
        strategy, total_amount, len(allocations),
    )

    return BulkPaymentPlan(
        strategy=strategy,
        total_amount=total_amount,
        allocations=allocations,
        message=(
            f"Allocated {settings.currency_symbol}{total_amount} across "
            f"{len(allocations)} record(s) via {strategy.upper()}."
        ),
    )
