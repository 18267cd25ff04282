"""User accounts and login sessions."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import os
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from .errors import AuthenticationError, DuplicateUserError, ValidationError
from .models import User
from .storage import UserRepository, new_document_id

logger = logging.getLogger(__name__)

_PBKDF2_ALG = "sha256"
_PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 6


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + pad).encode("ascii"))


def hash_password(password: str, iterations: int = _PBKDF2_ITERATIONS) -> str:
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac(_PBKDF2_ALG, password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_{_PBKDF2_ALG}${iterations}${_b64url_encode(salt)}${_b64url_encode(dk)}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        scheme, iter_s, salt_b64, dk_b64 = password_hash.split("$", 3)
        if not scheme.startswith("pbkdf2_"):
            return False
        alg = scheme.split("_", 1)[1]
        expected = _b64url_decode(dk_b64)
        actual = hashlib.pbkdf2_hmac(
            alg, password.encode("utf-8"), _b64url_decode(salt_b64), int(iter_s)
        )
    except ValueError:
        return False
    return hmac.compare_digest(actual, expected)


@dataclass
class Session:
    """An authenticated user's session.

    Created at login, passed explicitly to every store call and invalidated at
    logout.
    """

    user_id: str
    email: str
    token: str
    expires_at: datetime
    display_name: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    active: bool = True

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.active and (now or datetime.now()) < self.expires_at

    def invalidate(self) -> None:
        self.active = False


class IdentityProvider:
    """Registers users, checks credentials and keeps track of live sessions."""

    def __init__(
        self,
        users: Optional[UserRepository] = None,
        session_ttl: timedelta = timedelta(hours=24),
        iterations: int = _PBKDF2_ITERATIONS,
    ) -> None:
        self.users = users or UserRepository()
        self.session_ttl = session_ttl
        self._iterations = iterations
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def register(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        email_norm = (email or "").strip().lower()
        if "@" not in email_norm or len(email_norm) < 3:
            raise ValidationError("Please enter a valid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if self.users.get_by_email(email_norm) is not None:
            raise DuplicateUserError("Email already registered")

        user = User(
            id=new_document_id(),
            email=email_norm,
            password_hash=hash_password(password, self._iterations),
            display_name=(display_name or "").strip() or None,
        )
        self.users.add_unique(user)
        logger.info(f"Registered user {user.id}")
        return self._open_session(user)

    def login(self, email: str, password: str) -> Session:
        user = self.users.get_by_email(email or "")
        if user is None or not verify_password(password or "", user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return self._open_session(user)

    def logout(self, session: Session) -> None:
        session.invalidate()
        with self._lock:
            self._sessions.pop(session.token, None)
        logger.info(f"Closed session for user {session.user_id}")

    def resolve(self, token: str) -> Session:
        """Return the live session for *token*."""

        with self._lock:
            session = self._sessions.get(token or "")
        if session is None:
            raise AuthenticationError("Not authenticated")
        if not session.is_valid():
            self.logout(session)
            raise AuthenticationError("Session expired")
        return session

    def _prune_expired(self, now: datetime) -> None:
        expired = [token for token, session in self._sessions.items() if not session.is_valid(now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug(f"Pruned {len(expired)} expired sessions")

    def _open_session(self, user: User) -> Session:
        session = Session(
            user_id=user.id,
            email=user.email,
            token=secrets.token_urlsafe(32),
            expires_at=datetime.now() + self.session_ttl,
            display_name=user.display_name,
        )
        with self._lock:
            self._prune_expired(session.created_at)
            self._sessions[session.token] = session
        logger.info(f"Opened session for user {user.id}")
        return session


def require_session(session: Optional[Session]) -> Session:
    if session is None or not session.is_valid():
        raise AuthenticationError("You must be logged in")
    return session
