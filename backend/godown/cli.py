"""Billing CLI for quick checks from a shell.

Usage:
    python -m godown.cli rent-quote START AS_OF BAGS [PRICE_6M PRICE_1Y]
    python -m godown.cli allocate AMOUNT DUE [DUE ...]

Dates are ISO (YYYY-MM-DD).  Without explicit prices the configured default
rate table is used.  `allocate` applies the payment to the dues in the order
given, oldest first.
"""

import sys
from datetime import date
from decimal import Decimal

from godown.config import settings
from godown.schemas.billing import AllocationInput, RateTable, StorageRecordSnapshot
from godown.services.allocation import allocate_payment_fifo
from godown.services.rent import calculate_final_rent

USAGE = (
    "Usage: python -m godown.cli "
    "[rent-quote START AS_OF BAGS [PRICE_6M PRICE_1Y] | allocate AMOUNT DUE [DUE ...]]"
)


def rent_quote(args: list[str]) -> int:
    if len(args) not in (3, 5):
        print(USAGE)
        return 2

    start, as_of, bags = date.fromisoformat(args[0]), date.fromisoformat(args[1]), int(args[2])
    if len(args) == 5:
        rates = RateTable(price_6m=Decimal(args[3]), price_1y=Decimal(args[4]))
    else:
        rates = settings.default_rate_table()

    result = calculate_final_rent(
        StorageRecordSnapshot(storage_start_date=start), as_of, bags, rates,
    )
    print(f"  Months stored: {result.months_stored}")
    print(f"  Rate per bag:  {settings.currency_symbol}{result.rate}")
    print(f"  Rent due:      {settings.currency_symbol}{result.rent}")
    return 0


def allocate(args: list[str]) -> int:
    if len(args) < 2:
        print(USAGE)
        return 2

    amount = Decimal(args[0])
    records = [
        AllocationInput(record_id=str(i), record_number=f"R{i:03d}", total_due=Decimal(due))
        for i, due in enumerate(args[1:], start=1)
    ]
    summary = allocate_payment_fifo(records, amount)
    for a in summary.allocations:
        print(f"  {a.record_number}: paid {a.amount}, remaining {a.remaining}")
    print(f"\n  Allocated {summary.allocated}, unallocated {summary.unallocated}")
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    cmd = argv[0] if argv else ""
    if cmd == "rent-quote":
        return rent_quote(argv[1:])
    if cmd == "allocate":
        return allocate(argv[1:])
    print(USAGE)
    return 2


if __name__ == "__main__":
    sys.exit(main())
