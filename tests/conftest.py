"""
Shared test fixtures for pytest
"""

import os
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

os.environ.setdefault("DB_BACKEND", "sqlite")

from casino.create_sqlite_engine import create_sqlite_engine  # noqa: E402
from casino.db import create_tables, make_session_factory  # noqa: E402
from casino.domain import fairness  # noqa: E402
from casino.services.qubic_transfer import TransferClient  # noqa: E402
from casino.services.settlement import SettlementCoordinator  # noqa: E402

WALLET = "A" * 60
OTHER_WALLET = "B" * 60
PRIVATE_SEED = "test-private-seed"


def seeds(n: int) -> fairness.SeedPair:
    """Fixed seed pair ``test-public-seed-{n}`` / ``test-private-seed``."""
    return fairness.commit(f"test-public-seed-{n}", PRIVATE_SEED)


class FixedClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class MonotonicClock:
    """Stand-in for ``time.monotonic`` in round engines."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance_ms(self, ms: float):
        self.value += ms / 1000


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Fresh SQLite database per test"""
    engine = create_sqlite_engine(tmp_path / "casino.sqlite3")
    await create_tables(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def monotonic():
    return MonotonicClock()


@pytest.fixture
def transfer_client():
    """Transfer collaborator that succeeds with sequential tx ids"""
    client = AsyncMock(spec=TransferClient)
    client.transfer.side_effect = [f"tx-{i}" for i in range(1, 100)]
    return client


@pytest.fixture
def settlement(transfer_client, clock):
    return SettlementCoordinator(transfer_client, timeout=1.0, clock=clock)
