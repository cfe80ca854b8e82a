"""Pytest configuration and fixtures for billing tests."""

from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from godown.main import app
from godown.schemas.billing import AllocationInput, RateTable, StorageRecordSnapshot


# ── API client ───────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def paddy_rates() -> RateTable:
    """The standard 36 / 55 per-bag rate table."""
    return RateTable(price_6m=36, price_1y=55)


@pytest.fixture
def make_record():
    """Factory for storage record snapshots."""

    def _make(start=date(2024, 1, 1), bags_stored=100, **kwargs) -> StorageRecordSnapshot:
        return StorageRecordSnapshot(
            storage_start_date=start,
            bags_stored=bags_stored,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_dues():
    """Factory for FIFO allocation inputs from a list of dues."""

    def _make(*dues) -> list[AllocationInput]:
        return [
            AllocationInput(
                record_id=f"rec-{i}",
                record_number=f"R{i:03d}",
                total_due=due,
                storage_start_date=date(2024, i, 1),
            )
            for i, due in enumerate(dues, start=1)
        ]

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
    config.addinivalue_line("markers", "billing: Rent calculation tests")
    config.addinivalue_line("markers", "payments: Payment allocation tests")
    config.addinivalue_line("markers", "ledger: Storage ledger tests")
