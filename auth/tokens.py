"""
auth/tokens.py -- JWT session tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds, each signed with its own key
       so a leaked refresh-signing key cannot forge access tokens and vice
       versa [K1]:
         access  -- {"sub": user_id, "role": "USER"|"ADMIN", "iat", "exp"}
         refresh -- {"sub": user_id, "type": "refresh", "iat", "exp"}
       Verification raises a typed AccessError (core/errors.py) instead of
       returning None, because callers must tell expired, invalid and
       wrong-kind tokens apart.

  Staleness: an access token keeps the role it was issued with until it
       expires. refresh() re-reads the account, so role and active-flag
       changes take effect on the next refresh. There is no revocation list;
       logout is client-side only.

  Passwords: bcrypt used directly (no passlib wrapper). The _DUMMY_HASH
       constant enables timing equalization in authenticate_user() so
       response time does not reveal whether an email is registered [C1].

Layer rule: no imports from api/ or tasks/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import Role
from core.config import Settings, get_settings
from core.errors import (
    AccountDeactivated,
    InvalidCredentials,
    InvalidToken,
    InvalidUser,
    TokenExpired,
    WrongTokenType,
)

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("taskboard.auth")

_settings = get_settings()

_ALGORITHM = "HS256"
_REFRESH_TYPE = "refresh"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt rejects (>=5) or truncates (<5) input longer than 72 bytes. The
    API models and the admin CLI refuse such passwords before they get here.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash -- treat as a mismatch.
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("taskboard_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Authenticate an email/password login with timing equalization [C1].

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Raises InvalidCredentials for both, so the two are indistinguishable.
    Raises AccountDeactivated only after the password checked out -- an
    attacker without the password cannot probe the active flag.
    """
    user = store.find_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentials()
    if not user.is_active:
        raise AccountDeactivated("Your account has been deactivated.")
    return user


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds


@dataclass(frozen=True)
class AccessClaims:
    subject_id: str
    role: Role


@dataclass(frozen=True)
class RefreshClaims:
    subject_id: str


class TokenService:
    """Issues and verifies access/refresh token pairs.

    The UserStore handle is injected so refresh() can re-read the subject's
    current role and active flag. Nothing else touches the store; issuing
    and verifying are pure CPU work.

    Usage:
        tokens = TokenService.from_settings(get_settings(), user_store)
        pair = tokens.issue(user.id, user.role)
        claims = tokens.verify_access(pair.access_token)
        new_pair = tokens.refresh(pair.refresh_token)
    """

    def __init__(
        self,
        access_secret_key: str,
        refresh_secret_key: str,
        user_store: UserStore,
        access_expire_seconds: int = 7 * 24 * 3600,
        refresh_expire_seconds: int = 30 * 24 * 3600,
    ) -> None:
        self._access_key = access_secret_key
        self._refresh_key = refresh_secret_key
        self._user_store = user_store
        self.access_expire_seconds = access_expire_seconds
        self.refresh_expire_seconds = refresh_expire_seconds

    @classmethod
    def from_settings(cls, settings: Settings, user_store: UserStore) -> "TokenService":
        return cls(
            access_secret_key=settings.access_secret_key,
            refresh_secret_key=settings.refresh_secret_key,
            user_store=user_store,
            access_expire_seconds=settings.access_token_expire_seconds,
            refresh_expire_seconds=settings.refresh_token_expire_seconds,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, subject_id: str, role: Role) -> TokenPair:
        """Sign a fresh access + refresh pair for the given subject."""
        now = datetime.now(timezone.utc)
        access = jwt.encode(
            {
                "sub": subject_id,
                "role": Role(role).value,
                "iat": now,
                "exp": now + timedelta(seconds=self.access_expire_seconds),
            },
            self._access_key,
            algorithm=_ALGORITHM,
        )
        refresh = jwt.encode(
            {
                "sub": subject_id,
                "type": _REFRESH_TYPE,
                "iat": now,
                "exp": now + timedelta(seconds=self.refresh_expire_seconds),
            },
            self._refresh_key,
            algorithm=_ALGORITHM,
        )
        return TokenPair(access_token=access, refresh_token=refresh, expires_in=self.access_expire_seconds)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> AccessClaims:
        """Verify an access token and return its claims.

        A refresh token fails here with InvalidToken: it is signed with the
        other key, so the signature check rejects it before any claim is read.
        """
        try:
            payload = jwt.decode(token, self._access_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        subject_id = payload.get("sub")
        if not isinstance(subject_id, str) or not subject_id or payload.get("type") == _REFRESH_TYPE:
            raise InvalidToken()
        try:
            role = Role(payload.get("role"))
        except ValueError as exc:
            raise InvalidToken() from exc
        return AccessClaims(subject_id=subject_id, role=role)

    def verify_refresh(self, token: str) -> RefreshClaims:
        """Verify a refresh token and return its claims.

        An access token presented here fails with WrongTokenType rather than
        a generic InvalidToken: when the refresh-key signature check fails we
        re-check the signature against the access key, and a match means the
        caller sent the wrong kind of (genuine) token.
        """
        try:
            payload = jwt.decode(token, self._refresh_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired("Refresh token expired.") from exc
        except JWTError as exc:
            if self._signed_with_access_key(token):
                raise WrongTokenType() from exc
            raise InvalidToken("Invalid refresh token.") from exc

        if payload.get("type") != _REFRESH_TYPE:
            raise WrongTokenType()
        subject_id = payload.get("sub")
        if not isinstance(subject_id, str) or not subject_id:
            raise InvalidToken("Invalid refresh token.")
        return RefreshClaims(subject_id=subject_id)

    def _signed_with_access_key(self, token: str) -> bool:
        try:
            jwt.decode(token, self._access_key, algorithms=[_ALGORITHM], options={"verify_exp": False})
        except JWTError:
            return False
        return True

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a valid refresh token for a new pair.

        Re-reads the account so the new access token carries the current
        role. Raises InvalidUser if the account is gone or deactivated.
        """
        claims = self.verify_refresh(refresh_token)
        user = self._user_store.find_by_id(claims.subject_id)
        if user is None or not user.is_active:
            logger.info("Refresh rejected for subject %s (missing or inactive)", claims.subject_id)
            raise InvalidUser()
        return self.issue(user.id, user.role)
