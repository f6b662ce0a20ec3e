from datetime import date

import pytest

from database import KeyValueStore
from ledger import LoanLedger


class FakeClock:
    """Callable clock whose date tests can move forward."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def db_file(tmp_path, request):
    # Unique database file per test
    return str(tmp_path / f"test_{request.node.name}.db")

@pytest.fixture
def clock():
    return FakeClock(date(2024, 1, 1))

@pytest.fixture
def store(db_file):
    return KeyValueStore(db_file)

@pytest.fixture
def ledger(store, clock):
    ledger = LoanLedger(store, clock=clock)
    ledger.initialize()
    yield ledger
    ledger.close()
