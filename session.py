from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from exceptions import NotLoggedInError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    email: str


class SessionManager:
    """Holds the logged-in user for the lifetime of one page session.

    Login is a stub: any non-empty email/password pair succeeds and nothing
    is checked against a credential store. The session is never persisted.
    """

    def __init__(self) -> None:
        self._session: Optional[Session] = None

    @property
    def current(self) -> Optional[Session]:
        return self._session

    @property
    def is_logged_in(self) -> bool:
        return self._session is not None

    def login(self, email: Optional[str], password: Optional[str]) -> Session:
        if not email or not password:
            logger.info("Login rejected: missing email or password")
            raise ValidationError("Please enter both email and password!")
        self._session = Session(email=email)
        logger.info(f"User logged in: {self._session.email}")
        return self._session

    def logout(self) -> None:
        if self._session is not None:
            logger.info(f"User logged out: {self._session.email}")
        self._session = None

    def require_user(self) -> Session:
        if self._session is None:
            raise NotLoggedInError("Please log in first!")
        return self._session
