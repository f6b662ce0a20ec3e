import logging
import threading
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from book import find_book_by_title
from config import settings
from database import KeyValueStore
from exceptions import AlreadyBorrowedError, NotFoundError, PersistenceDecodeError, SelectionError
from loan import LoanRecord, decode_records, due_date_for, encode_records

logger = logging.getLogger(__name__)


class LoanLedger:
    """Borrow records, newest first, mirrored to key-value storage.

    Mutations write the new record list to storage first and only replace
    ``self.records`` once the write succeeded, so a failed write leaves the
    ledger as it was. A lock serialises mutations for threaded servers.
    """

    def __init__(self, store: Optional[KeyValueStore] = None, *, storage_key: Optional[str] = None,
                 clock: Callable[[], date] = date.today, borrow_days: Optional[int] = None,
                 penalty_per_day: Optional[int] = None) -> None:
        self.store = store if store is not None else KeyValueStore()
        self.storage_key = storage_key or settings.storage_key
        self.clock = clock
        self.borrow_days = borrow_days if borrow_days is not None else settings.borrow_days
        self.penalty_per_day = penalty_per_day if penalty_per_day is not None else settings.penalty_per_day
        self.records: List[LoanRecord] = []
        self._lock = threading.RLock()

    # ------------------------- Persistence ------------------------- #
    def initialize(self) -> None:
        """Load the stored records; missing or corrupt data starts an empty ledger."""
        with self._lock:
            raw = self.store.get_item(self.storage_key)
            try:
                self.records = decode_records(raw)
            except PersistenceDecodeError as e:
                logger.warning(f"Discarding unreadable ledger under '{self.storage_key}': {e}")
                self.records = []
        logger.info(f"Ledger initialized with {len(self.records)} record(s)")

    def import_json(self, raw: str) -> int:
        """Seed an empty ledger from a JSON array exported from browser storage.

        Raises PersistenceDecodeError for unreadable input and ValueError if
        the ledger already holds records.
        """
        records = decode_records(raw)
        on_loan = [r.book_id for r in records if not r.is_returned]
        if len(on_loan) != len(set(on_loan)):
            raise PersistenceDecodeError("Imported ledger has the same book on loan twice")
        if len({r.id for r in records}) != len(records):
            raise PersistenceDecodeError("Imported ledger has duplicate record ids")
        with self._lock:
            if self.records:
                raise ValueError("Ledger already has records; import only into an empty ledger.")
            if not records:
                return 0
            self._commit(records)
        logger.info(f"Imported {len(records)} record(s)")
        return len(records)

    def export_json(self) -> str:
        with self._lock:
            return encode_records(self.records)

    def _commit(self, records: List[LoanRecord]) -> None:
        """Persist ``records`` and make them current; on a failed write nothing changes."""
        self.store.set_item(self.storage_key, encode_records(records))
        self.records = records

    # ------------------------- Core operations ------------------------- #
    def borrow(self, title: Optional[str]) -> LoanRecord:
        """Borrow a catalog title; ``record.confirmation()`` gives the user-facing message."""
        if not title:
            raise SelectionError("Please choose a book title!")
        book = find_book_by_title(title)
        if book is None:
            raise SelectionError(f"'{title}' is not in the catalog.")

        with self._lock:
            if any(r.book_id == book.id and not r.is_returned for r in self.records):
                logger.info(f"Borrow rejected, already outstanding: {book.title}")
                raise AlreadyBorrowedError("You already borrowed this book!")

            today = self.clock()
            record = LoanRecord(
                record_id=self._next_id(),
                book_id=book.id,
                title=book.title,
                borrow_date=today,
                due_date=due_date_for(today, self.borrow_days),
            )
            self._commit([record] + self.records)
        logger.info(f"Borrowed '{book.title}' (record {record.id}), due {record.due_date}")
        return record

    def return_book(self, record_id: int) -> LoanRecord:
        with self._lock:
            for index, record in enumerate(self.records):
                if record.id == record_id and not record.is_returned:
                    closed = record.returned_on(self.clock(), self.penalty_per_day)
                    updated = list(self.records)
                    updated[index] = closed
                    self._commit(updated)
                    break
            else:
                raise NotFoundError(f"No outstanding loan with id {record_id}.")
        logger.info(f"Returned '{closed.title}' (record {closed.id}), penalty {closed.penalty}")
        return closed

    def list_records(self) -> List[LoanRecord]:
        with self._lock:
            return list(self.records)

    # ------------------------- Derived views ------------------------- #
    def outstanding(self) -> List[LoanRecord]:
        return [r for r in self.list_records() if not r.is_returned]

    def total_penalty(self) -> int:
        return sum(r.penalty for r in self.list_records())

    def get_statistics(self) -> Dict[str, Any]:
        today = self.clock()
        records = self.list_records()
        outstanding = [r for r in records if not r.is_returned]
        return {
            "total_records": len(records),
            "outstanding": len(outstanding),
            "returned": len(records) - len(outstanding),
            "overdue": sum(1 for r in outstanding if r.is_overdue(today)),
            "total_penalty": sum(r.penalty for r in records),
        }

    # ------------------------- Utilities ------------------------- #
    def _next_id(self) -> int:
        candidate = int(time.time() * 1000)
        existing = {r.id for r in self.records}
        if candidate in existing:
            candidate = max(existing) + 1
        return candidate

    def close(self) -> None:
        self.store.close()
