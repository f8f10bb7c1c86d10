"""Sign-in and session tokens for protected routes."""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import jwt
from passlib.context import CryptContext

from .errors import AuthenticationError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "__session"
SESSION_LIFETIME = timedelta(days=14)
JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Identity:
    """An authenticated user."""
    uid: str
    email: str
    display_name: Optional[str] = None


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Bcrypt hash for an ``auth.users`` entry."""
    if rounds is None:
        return pwd_context.hash(password)
    return pwd_context.hash(password, rounds=rounds)


def verify_password(password: str, encoded: str) -> bool:
    try:
        return pwd_context.verify(password, encoded)
    except (ValueError, TypeError):
        logger.warning("Malformed password hash in configuration")
        return False


class AuthProvider(ABC):
    """Authentication interface consumed by the app and the HTTP server."""

    @abstractmethod
    def authenticate(self, email: str, password: str) -> Identity:
        """Check credentials without changing who is signed in (raises AuthenticationError)."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate and make the identity current (raises AuthenticationError)."""

    @abstractmethod
    def sign_out(self) -> None:
        """Forget the current identity."""

    @abstractmethod
    def current_user(self) -> Optional[Identity]:
        """The signed-in identity, if any."""

    @abstractmethod
    def issue_token(self, identity: Identity) -> str:
        """Create a session token for an identity."""

    @abstractmethod
    def verify_token(self, token: str) -> Optional[Identity]:
        """Identity for a valid, unexpired token; None otherwise."""


class ConfigAuthProvider(AuthProvider):
    """Users listed in configuration; session tokens are signed JWTs."""

    def __init__(self,
                 users: List[Dict[str, Any]],
                 secret_key: Optional[str] = None,
                 session_lifetime: timedelta = SESSION_LIFETIME,
                 clock: Callable[[], datetime] = _utcnow):
        """Initialize config-backed auth provider.

        Args:
            users: Entries with ``email``, ``password_hash`` and optional
                   ``uid`` and ``display_name``
            secret_key: Token signing key; a random per-process key when unset
            session_lifetime: How long a sign-in and an issued token stay valid
            clock: Source of the current time (timezone-aware)
        """
        self._users: Dict[str, Dict[str, Any]] = {}
        for entry in users or []:
            email = str(entry.get("email", "")).strip().lower()
            if not email or not entry.get("password_hash"):
                logger.warning("Skipping auth user entry without email or password_hash")
                continue
            self._users[email] = entry
        if not secret_key:
            logger.warning("auth.secret_key not set; session tokens will not survive a restart")
            secret_key = secrets.token_urlsafe(32)
        self._secret_key = secret_key
        self.session_lifetime = session_lifetime
        self._clock = clock
        self._current: Optional[Identity] = None
        self._current_expires: Optional[datetime] = None
        logger.info(f"ConfigAuthProvider initialized with {len(self._users)} users")

    @classmethod
    def from_config(cls, config) -> "ConfigAuthProvider":
        return cls(config.get('auth.users', []) or [], secret_key=config.get('auth.secret_key'))

    def authenticate(self, email: str, password: str) -> Identity:
        key = (email or "").strip().lower()
        entry = self._users.get(key)
        if entry is None or not verify_password(password or "", entry["password_hash"]):
            logger.warning(f"Sign-in rejected for {key or '<blank>'}")
            raise AuthenticationError("Invalid email or password")

        return Identity(
            uid=str(entry.get("uid") or key),
            email=key,
            display_name=entry.get("display_name"),
        )

    def sign_in(self, email: str, password: str) -> Identity:
        identity = self.authenticate(email, password)
        self._current = identity
        self._current_expires = self._clock() + self.session_lifetime
        logger.info(f"Signed in {identity.email}")
        return identity

    def sign_out(self) -> None:
        if self._current:
            logger.info(f"Signed out {self._current.email}")
        self._current = None
        self._current_expires = None

    def current_user(self) -> Optional[Identity]:
        if self._current_expires is not None and self._clock() >= self._current_expires:
            logger.info("Signed-in session expired")
            self.sign_out()
        return self._current

    def issue_token(self, identity: Identity) -> str:
        now = self._clock()
        payload = {
            "sub": identity.uid,
            "email": identity.email,
            "iat": now,
            "exp": now + self.session_lifetime,
        }
        if identity.display_name:
            payload["name"] = identity.display_name
        return jwt.encode(payload, self._secret_key, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> Optional[Identity]:
        if not token:
            return None
        try:
            data = jwt.decode(token, self._secret_key, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError as e:
            logger.debug(f"Session token rejected: {e}")
            return None

        email = data.get("email")
        if email not in self._users:
            logger.warning(f"Session token for unknown user {email}")
            return None
        return Identity(uid=data.get("sub"), email=email, display_name=data.get("name"))
