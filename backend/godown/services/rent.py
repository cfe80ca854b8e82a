"""Storage rent calculation.

Rent for a stored lot is priced per bag from a two-tier rate table:

    months_stored <= 6  ->  price_6m
    months_stored >  6  ->  price_1y

Crossing into month 7 re-rates the *whole* stay at the 1-year rate.  There
is no blending of the two tiers (a 7-month stay is not "6 months at price_6m
plus 1 month at price_1y").

Months are calendar months counted from the storage start date.  A partial
month counts as a full month and any stay at all is billed at least one
month, so a 15-day stay is 1 month and a stay of exactly 3 calendar months
is 3 months.

The as-of date is always passed in by the caller; nothing here reads the
clock.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from godown.schemas.billing import (
    BillingCycle,
    RateTable,
    RecordStatus,
    RentResult,
    StorageRecordSnapshot,
)

logger = logging.getLogger(__name__)

SIX_MONTH_TIER_LIMIT = 6
ZERO = Decimal("0")


def _as_date(value: date) -> date:
    """Truncate datetimes to their calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def months_stored(start: date, as_of: date) -> int:
    """Billable calendar months between ``start`` and ``as_of``.

    Returns 0 when ``as_of`` is before ``start``.  Month-end start dates
    clamp, so Jan 31 -> Feb 29 is exactly one month.
    """
    start = _as_date(start)
    as_of = _as_date(as_of)
    if as_of < start:
        return 0

    delta = relativedelta(as_of, start)
    months = delta.years * 12 + delta.months
    if start + relativedelta(months=months) < as_of:
        months += 1
    return max(months, 1)


def select_rate(months: int, rate_table: RateTable) -> Decimal:
    """Per-bag rate for a stay; past six months the 1-year rate covers the whole stay."""
    if months <= SIX_MONTH_TIER_LIMIT:
        return rate_table.price_6m
    return rate_table.price_1y


def calculate_final_rent(
    record: StorageRecordSnapshot,
    as_of_date: date,
    bags_to_calculate: int,
    rate_table: RateTable,
) -> RentResult:
    """Rent owed for ``bags_to_calculate`` bags of ``record`` as of a date.

    Used for withdrawals (full or partial) and for "estimated rent due"
    figures.  An as-of date before the storage start date is a caller
    error; it yields zero months and zero rent rather than raising.
    """
    months = months_stored(record.storage_start_date, as_of_date)
    if months == 0:
        logger.debug(
            "As-of date %s precedes storage start %s for record %s",
            as_of_date, record.storage_start_date, record.record_id,
        )
        return RentResult(months_stored=0, rate=ZERO, rent=ZERO)

    rate = select_rate(months, rate_table)
    return RentResult(
        months_stored=months,
        rate=rate,
        rent=rate * bags_to_calculate,
    )


def get_record_status(
    record: StorageRecordSnapshot,
    as_of_date: date,
    rate_table: RateTable,
) -> RecordStatus:
    """Billing term a record is in on ``as_of_date`` and what falls due next."""
    if record.storage_end_date is not None:
        return RecordStatus(status="Withdrawn", current_rate=ZERO)

    as_of = _as_date(as_of_date)
    start = record.storage_start_date
    six_month_date = start + relativedelta(months=6)
    one_year_date = start + relativedelta(months=12)

    if as_of < six_month_date:
        return RecordStatus(
            status="Active - 6-Month Term",
            next_billing_date=six_month_date,
            current_rate=rate_table.price_6m,
        )

    if as_of < one_year_date:
        alert = None
        if record.billing_cycle == BillingCycle.SIX_MONTH_INITIAL:
            alert = "1-Year Rollover top-up is due."
        return RecordStatus(
            status="Active - 1-Year Rollover",
            next_billing_date=one_year_date,
            current_rate=rate_table.price_1y,
            alert=alert,
        )

    years_stored = relativedelta(as_of, start).years
    renewal_years = years_stored + 1
    return RecordStatus(
        status=f"In 1-Year Renewal (Y{renewal_years})",
        next_billing_date=start + relativedelta(years=renewal_years),
        current_rate=rate_table.price_1y,
        alert=f"Renewal for Year {renewal_years + 1} is due.",
    )
