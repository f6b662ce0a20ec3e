from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from database import KeyValueStore
from ledger import LoanLedger
from session import SessionManager


@dataclass
class AppContext:
    """One user's view of the system: a session plus the ledger it gates."""

    ledger: LoanLedger
    session: SessionManager = field(default_factory=SessionManager)


def create_context(db_file: Optional[str] = None, clock: Optional[Callable[[], date]] = None) -> AppContext:
    """Build a fresh context over ``db_file`` and load its ledger."""
    ledger = LoanLedger(KeyValueStore(db_file), clock=clock or date.today)
    ledger.initialize()
    return AppContext(ledger=ledger)
