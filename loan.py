from __future__ import annotations

import json
from datetime import date, timedelta
from typing import List, Optional

from exceptions import PersistenceDecodeError


def compute_penalty(due_date: date, return_date: date, per_day: int) -> int:
    """Whole days past ``due_date`` times ``per_day``; never negative."""
    days_late = (return_date - due_date).days
    return max(0, days_late) * per_day


def due_date_for(borrow_date: date, borrow_days: int) -> date:
    return borrow_date + timedelta(days=borrow_days)


class LoanRecord:
    """A single borrow of a catalog book."""

    def __init__(self, record_id: int, book_id: int, title: str, borrow_date: date, due_date: date,
                 return_date: Optional[date] = None, penalty: int = 0) -> None:
        self.id = record_id
        self.book_id = book_id
        self.title = title
        self.borrow_date = borrow_date
        self.due_date = due_date
        self.return_date = return_date
        self.penalty = penalty

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (f"LoanRecord(id={self.id}, book_id={self.book_id}, title={self.title!r}, "
                f"borrow_date={self.borrow_date}, due_date={self.due_date}, "
                f"return_date={self.return_date}, penalty={self.penalty})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LoanRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    def is_overdue(self, today: date) -> bool:
        return not self.is_returned and today > self.due_date

    def returned_on(self, today: date, per_day: int) -> "LoanRecord":
        """Copy of this record closed on ``today`` with its penalty computed."""
        return LoanRecord(self.id, self.book_id, self.title, self.borrow_date, self.due_date,
                          return_date=today, penalty=compute_penalty(self.due_date, today, per_day))

    def confirmation(self) -> str:
        return f'Borrowed "{self.title}" successfully! Due on {self.due_date.isoformat()}'

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookId": self.book_id,
            "title": self.title,
            "borrowDate": self.borrow_date.isoformat(),
            "dueDate": self.due_date.isoformat(),
            "returnDate": self.return_date.isoformat() if self.return_date else None,
            "penalty": self.penalty,
        }

    @staticmethod
    def from_dict(data: dict) -> "LoanRecord":
        return_date = data.get("returnDate")
        return LoanRecord(
            record_id=int(data["id"]),
            book_id=int(data["bookId"]),
            title=str(data["title"]),
            borrow_date=date.fromisoformat(data["borrowDate"]),
            due_date=date.fromisoformat(data["dueDate"]),
            return_date=date.fromisoformat(return_date) if return_date else None,
            # Older rows may carry fractional penalties
            penalty=int(data.get("penalty") or 0),
        )


def encode_records(records: List[LoanRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False)


def decode_records(raw: Optional[str]) -> List[LoanRecord]:
    """Parse the stored JSON array. ``None`` or an empty string means no records."""
    if raw is None or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceDecodeError(f"Stored ledger is not valid JSON: {exc}") from exc
    # JSON.parse("null") in the browser shim behaves like an empty store
    if data is None:
        return []
    if not isinstance(data, list):
        raise PersistenceDecodeError(f"Stored ledger must be a list, got {type(data).__name__}")
    records = []
    for item in data:
        if not isinstance(item, dict):
            raise PersistenceDecodeError("Stored ledger contains a non-object entry")
        try:
            records.append(LoanRecord.from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceDecodeError(f"Malformed loan record: {exc}") from exc
    return records
