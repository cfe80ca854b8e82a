"""Pydantic schemas for storage rent billing and payment allocation.

Amounts are Decimal throughout.  Every model here is a transient snapshot:
callers build it from their own records right before a calculation and
persist whatever they need from the result.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class BillingCycle(str, Enum):
    SIX_MONTH_INITIAL = "6-Month Initial"
    ONE_YEAR_ROLLOVER = "1-Year Rollover"
    ONE_YEAR_RENEWAL = "1-Year Renewal"
    COMPLETED = "Completed"


# ── Rent ─────────────────────────────────────────────────────

class RateTable(BaseModel):
    """Per-bag rates for one crop/commodity."""
    price_6m: Decimal = Field(..., ge=0)   # stays of up to 6 months
    price_1y: Decimal = Field(..., ge=0)   # stays longer than 6 months


class StorageRecordSnapshot(BaseModel):
    record_id: str | None = None
    record_number: str | None = None
    storage_start_date: date
    bags_stored: int = Field(0, ge=0)
    bags_out: int = Field(0, ge=0)
    total_rent_billed: Decimal = Field(Decimal("0"), ge=0)
    storage_end_date: date | None = None
    billing_cycle: BillingCycle = BillingCycle.SIX_MONTH_INITIAL


class RentResult(BaseModel):
    months_stored: int = Field(..., ge=0)
    rate: Decimal
    rent: Decimal = Field(..., ge=0)


class RecordStatus(BaseModel):
    status: str
    next_billing_date: date | None = None
    current_rate: Decimal
    alert: str | None = None


# ── Ledger impacts ───────────────────────────────────────────

class RecordUpdate(BaseModel):
    """Partial update for a storage record.

    Only fields that were explicitly set should be written back; use
    ``model_dump(exclude_unset=True)``.  An explicit ``storage_end_date=None``
    means "reopen the record".
    """
    bags_stored: int | None = None
    bags_out: int | None = None
    total_rent_billed: Decimal | None = None
    storage_end_date: date | None = None
    billing_cycle: BillingCycle | None = None


class LedgerImpact(BaseModel):
    updates: RecordUpdate
    is_closed: bool


class WithdrawalChange(BaseModel):
    """One side of an edited withdrawal (before or after)."""
    bags: int = Field(..., ge=0)
    rent: Decimal = Field(..., ge=0)
    withdrawal_date: date | None = None


class BulkOutflowOperation(BaseModel):
    record_id: str | None
    record_number: str | None
    bags: int
    months_stored: int
    rent: Decimal
    payment: Decimal
    impact: LedgerImpact


class BulkOutflowPlan(BaseModel):
    withdrawal_date: date
    total_bags: int
    total_rent: Decimal
    amount_paid_now: Decimal
    operations: list[BulkOutflowOperation]


# ── Payments ─────────────────────────────────────────────────

class AllocationInput(BaseModel):
    record_id: str
    record_number: str
    total_due: Decimal = Field(..., ge=0)
    storage_start_date: date | None = None


class AllocationOutput(BaseModel):
    record_id: str
    record_number: str
    amount: Decimal
    remaining: Decimal


class AllocationSummary(BaseModel):
    allocations: list[AllocationOutput]
    allocated: Decimal
    unallocated: Decimal


class PaymentEntry(BaseModel):
    """A payment against a record; rent and hamali payments count alike."""
    amount: Decimal = Field(..., ge=0)
    is_deleted: bool = False


class RecordDues(BaseModel):
    """Billing totals of a storage record plus the payments made against it."""
    record_id: str
    record_number: str | None = None
    storage_start_date: date
    total_rent_billed: Decimal = Field(Decimal("0"), ge=0)
    hamali_payable: Decimal = Field(Decimal("0"), ge=0)
    storage_end_date: date | None = None
    is_deleted: bool = False
    payments: list[PaymentEntry] = []


class ManualAllocation(BaseModel):
    record_id: str
    amount: Decimal = Field(..., ge=0)


class BulkPaymentPlan(BaseModel):
    strategy: Literal["fifo", "manual"]
    total_amount: Decimal
    allocations: list[AllocationOutput]
    message: str


# ── HTTP request bodies ──────────────────────────────────────

class RentQuoteRequest(BaseModel):
    storage_start_date: date
    as_of_date: date
    bags: int = Field(..., ge=0)
    rate_table: RateTable | None = None


class RecordStatusRequest(BaseModel):
    record: StorageRecordSnapshot
    as_of_date: date
    rate_table: RateTable | None = None


class OutflowPreviewRequest(BaseModel):
    record: StorageRecordSnapshot
    bags: int = Field(..., gt=0)
    withdrawal_date: date
    rate_table: RateTable | None = None


class OutflowPreview(BaseModel):
    rent: RentResult
    impact: LedgerImpact


class BulkOutflowRequest(BaseModel):
    records: list[StorageRecordSnapshot] = Field(..., min_length=1)
    total_bags: int = Field(..., gt=0)
    withdrawal_date: date
    amount_paid_now: Decimal = Field(Decimal("0"), ge=0)
    rate_table: RateTable | None = None


class AllocationRequest(BaseModel):
    records: list[AllocationInput]
    total_amount: Decimal = Field(..., ge=0)

    @field_validator("records")
    @classmethod
    def unique_record_ids(cls, v: list[AllocationInput]) -> list[AllocationInput]:
        ids = [r.record_id for r in v]
        if len(ids) != len(set(ids)):
            raise ValueError("record_id values must be unique")
        return v


class BulkPaymentRequest(AllocationRequest):
    strategy: Literal["fifo", "manual"] = "fifo"
    manual_allocations: list[ManualAllocation] | None = None

    @model_validator(mode="after")
    def manual_needs_allocations(self) -> "BulkPaymentRequest":
        if self.strategy == "manual" and not self.manual_allocations:
            raise ValueError("manual_allocations are required for the manual strategy")
        return self
