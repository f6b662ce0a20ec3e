import logging
import secrets
import threading
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.security import APIKeyHeader
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from book import list_books
from config import settings
from database import KeyValueStore
from exceptions import AlreadyBorrowedError, NotFoundError, SelectionError, ValidationError
from ledger import LoanLedger
from loan import LoanRecord
from session import SessionManager

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


class SessionStore:
    """Volatile map of client tokens to their session managers.

    Nothing here survives a restart, the same way a page reload drops the
    logged-in user. Tokens expire after ``ttl_seconds`` of inactivity and the
    map never holds more than ``max_sessions`` entries; the ones closest to
    expiry are dropped first.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, max_sessions: Optional[int] = None,
                 now: Callable[[], datetime] = datetime.now) -> None:
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds)
        self.max_sessions = max_sessions if max_sessions is not None else settings.max_sessions
        self.now = now
        self._sessions: Dict[str, Tuple[SessionManager, datetime]] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._sessions)

    def open(self, email: Optional[str], password: Optional[str]) -> str:
        manager = SessionManager()
        manager.login(email, password)
        token = secrets.token_urlsafe(24)
        with self._lock:
            self._purge_expired()
            self._sessions[token] = (manager, self.now() + self.ttl)
            if len(self._sessions) > self.max_sessions:
                # Evict the entries closest to expiry
                oldest = sorted(self._sessions.items(), key=lambda item: item[1][1])
                for old_token, _ in oldest[:len(self._sessions) - self.max_sessions]:
                    self._sessions.pop(old_token, None)
                logger.info(f"Session store full, evicted down to {self.max_sessions}")
        return token

    def get(self, token: Optional[str]) -> Optional[SessionManager]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            manager, expires_at = entry
            if self.now() >= expires_at or not manager.is_logged_in:
                del self._sessions[token]
                return None
            # Sliding expiry: activity keeps the session alive
            self._sessions[token] = (manager, self.now() + self.ttl)
            return manager

    def close(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            entry = self._sessions.pop(token, None)
        if entry is None:
            return False
        entry[0].logout()
        return True

    def _purge_expired(self) -> None:
        now = self.now()
        for token in [t for t, (_, expires_at) in self._sessions.items() if now >= expires_at]:
            del self._sessions[token]



# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str

class LoanRecordModel(BaseModel):
    id: int
    bookId: int
    title: str
    borrowDate: date
    dueDate: date
    returnDate: Optional[date] = None
    penalty: int

class LoginModel(BaseModel):
    email: str = ""
    password: str = ""

class SessionModel(BaseModel):
    email: str
    token: Optional[str] = None

class BorrowModel(BaseModel):
    title: str = ""

class BorrowResponse(BaseModel):
    record: LoanRecordModel
    message: str

class ConfigModel(BaseModel):
    app_name: str
    currency_symbol: str
    borrow_days: int
    penalty_per_day: int

class StatsModel(BaseModel):
    total_records: int
    outstanding: int
    returned: int
    overdue: int
    total_penalty: int


def _record_model(record: LoanRecord) -> LoanRecordModel:
    return LoanRecordModel(**record.to_dict())


# --- Security ---
session_token_header = APIKeyHeader(name="X-Session-Token", auto_error=False)

def get_ledger(request: Request) -> LoanLedger:
    return request.app.state.ledger

def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions

def get_current_session(
    token: Optional[str] = Security(session_token_header),
    sessions: SessionStore = Depends(get_sessions),
) -> SessionManager:
    """Dependency that resolves the caller's session or rejects the request."""
    manager = sessions.get(token)
    if manager is None:
        raise HTTPException(status_code=401, detail="Please log in first!")
    return manager


def create_app(db_file: Optional[str] = None, clock: Callable[[], date] = date.today,
               sessions: Optional[SessionStore] = None) -> FastAPI:
    """Build the application with its own ledger and session store.

    Called by uvicorn with ``--factory``; nothing is opened at import time.
    """
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    ledger = LoanLedger(KeyValueStore(db_file), clock=clock)
    ledger.initialize()
    app.state.ledger = ledger
    app.state.sessions = sessions if sessions is not None else SessionStore()

    # --- Health ---
    @app.get("/health")
    def health(ledger: LoanLedger = Depends(get_ledger)):
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_records": len(ledger.list_records()),
        }

    @app.get("/config", response_model=ConfigModel)
    def get_config():
        """Display settings the UI needs (currency, loan rules)."""
        return ConfigModel(
            app_name=settings.app_name,
            currency_symbol=settings.currency_symbol,
            borrow_days=settings.borrow_days,
            penalty_per_day=settings.penalty_per_day,
        )

    # --- Catalog ---
    @app.get("/books", response_model=List[BookModel])
    def get_books():
        return [BookModel(**b.to_dict()) for b in list_books()]

    # --- Session ---
    @app.post("/session", response_model=SessionModel)
    def login(payload: LoginModel, sessions: SessionStore = Depends(get_sessions)):
        try:
            token = sessions.open(payload.email, payload.password)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return SessionModel(email=payload.email, token=token)

    @app.get("/session", response_model=SessionModel)
    def whoami(manager: SessionManager = Depends(get_current_session)):
        return SessionModel(email=manager.require_user().email)

    @app.delete("/session")
    def logout(
        token: Optional[str] = Security(session_token_header),
        sessions: SessionStore = Depends(get_sessions),
    ):
        sessions.close(token)
        return {"message": "Logged out"}

    # --- Loans ---
    @app.get("/loans", response_model=List[LoanRecordModel], dependencies=[Depends(get_current_session)])
    def get_loans(ledger: LoanLedger = Depends(get_ledger)):
        return [_record_model(r) for r in ledger.list_records()]

    @app.post("/loans", response_model=BorrowResponse, dependencies=[Depends(get_current_session)])
    def borrow(payload: BorrowModel, ledger: LoanLedger = Depends(get_ledger)):
        try:
            record = ledger.borrow(payload.title)
        except SelectionError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except AlreadyBorrowedError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return BorrowResponse(record=_record_model(record), message=record.confirmation())

    @app.post("/loans/{record_id}/return", response_model=LoanRecordModel,
              dependencies=[Depends(get_current_session)])
    def return_loan(record_id: int, ledger: LoanLedger = Depends(get_ledger)):
        try:
            return _record_model(ledger.return_book(record_id))
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/stats", response_model=StatsModel, dependencies=[Depends(get_current_session)])
    def get_stats(ledger: LoanLedger = Depends(get_ledger)):
        return StatsModel(**ledger.get_statistics())

    # --- Static files ---
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    @app.get("/")
    def read_root():
        """Serve the single-page UI."""
        return FileResponse(str(STATIC_DIR / "index.html"))

    return app

