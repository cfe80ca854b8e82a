"""Billing router — rent quotes, withdrawal previews and payment plans.

These endpoints only calculate.  The calling application looks up its own
records and rate tables, posts snapshots here and persists whatever it
decides to keep.

Endpoints:
    POST /api/billing/rent/quote          Rent owed for N bags as of a date
    POST /api/billing/records/status      Billing term and next due date
    POST /api/billing/outflow/preview     Rent + ledger impact of a withdrawal
    POST /api/billing/outflow/bulk-plan   FIFO withdrawal across records
    POST /api/billing/payments/allocate   FIFO allocation of one payment
    POST /api/billing/payments/bulk-plan  Validated FIFO / manual payment plan
"""

from fastapi import APIRouter

from godown.config import settings
from godown.schemas.billing import (
    AllocationRequest,
    AllocationSummary,
    BulkOutflowPlan,
    BulkOutflowRequest,
    BulkPaymentPlan,
    BulkPaymentRequest,
    OutflowPreview,
    OutflowPreviewRequest,
    RateTable,
    RecordStatus,
    RecordStatusRequest,
    RentQuoteRequest,
    RentResult,
    StorageRecordSnapshot,
)
from godown.services.allocation import allocate_payment_fifo, plan_bulk_payment
from godown.services.ledger import (
    calculate_outflow_impact,
    plan_bulk_outflow,
    validate_withdrawal,
)
from godown.services.rent import calculate_final_rent, get_record_status

router = APIRouter()


def _rates(rate_table: RateTable | None) -> RateTable:
    return rate_table or settings.default_rate_table()


# ── Rent ─────────────────────────────────────────────────────

@router.post("/rent/quote", response_model=RentResult)
async def quote_rent(body: RentQuoteRequest):
    """Rent due for ``bags`` bags stored since ``storage_start_date``."""
    record = StorageRecordSnapshot(storage_start_date=body.storage_start_date)
    return calculate_final_rent(record, body.as_of_date, body.bags, _rates(body.rate_table))


@router.post("/records/status", response_model=RecordStatus)
async def record_status(body: RecordStatusRequest):
    return get_record_status(body.record, body.as_of_date, _rates(body.rate_table))


# ── Outflow ──────────────────────────────────────────────────

@router.post("/outflow/preview", response_model=OutflowPreview)
async def preview_outflow(body: OutflowPreviewRequest):
    """Validate a withdrawal and return its rent and record updates."""
    validate_withdrawal(body.record, body.bags, body.withdrawal_date)
    rent = calculate_final_rent(
        body.record, body.withdrawal_date, body.bags, _rates(body.rate_table),
    )
    impact = calculate_outflow_impact(
        body.record, body.bags, rent.rent, body.withdrawal_date,
    )
    return OutflowPreview(rent=rent, impact=impact)


@router.post("/outflow/bulk-plan", response_model=BulkOutflowPlan)
async def bulk_outflow_plan(body: BulkOutflowRequest):
    return plan_bulk_outflow(
        body.records,
        body.total_bags,
        body.withdrawal_date,
        _rates(body.rate_table),
        amount_paid_now=body.amount_paid_now,
    )


# ── Payments ─────────────────────────────────────────────────

@router.post("/payments/allocate", response_model=AllocationSummary)
async def allocate_payment(body: AllocationRequest):
    """Oldest-first allocation; records must already be in FIFO order."""
    return allocate_payment_fifo(body.records, body.total_amount)


@router.post("/payments/bulk-plan", response_model=BulkPaymentPlan)
async def bulk_payment_plan(body: BulkPaymentRequest):
    return plan_bulk_payment(
        body.records,
        body.total_amount,
        strategy=body.strategy,
        manual_allocations=body.manual_allocations,
    )
