"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Three enforcement helpers:
  authenticate()       -- mandatory. Bearer token -> verified claims -> live
                          account -> Identity attached to request.state.
  optional_auth()      -- soft variant. Same steps, but any failure (token,
                          account or store) yields None and no identity is
                          attached.
  authorize(*roles)    -- role gate factory. Runs after authenticate() and
                          checks the attached identity's role.

The TokenService and UserStore are read from app.state, where the lifespan
(or a test fixture) put them. Nothing here caches an authorization decision:
every request re-reads the account.

Failures raise core.errors.AccessError subclasses; api/main.py renders them.

Layer rule: no imports from api/ or tasks/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from auth.models import Identity, Role
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import AccessError, AccountDeactivated, Forbidden, InvalidToken, NoToken, NotAuthenticated

logger = logging.getLogger("taskboard.auth")

_BEARER_PREFIX = "Bearer "


def _extract_bearer(request: Request) -> str:
    """Return the raw token from 'Authorization: Bearer <token>' or raise NoToken."""
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise NoToken()
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise NoToken()
    return token


def _resolve_identity(request: Request) -> Identity:
    tokens: TokenService = request.app.state.tokens
    user_store: UserStore = request.app.state.user_store

    claims = tokens.verify_access(_extract_bearer(request))
    user = user_store.find_by_id(claims.subject_id)
    if user is None:
        raise InvalidToken("Invalid token. User not found.")
    if not user.is_active:
        raise AccountDeactivated()
    # Role comes from the account row, not the token claim.
    return Identity.from_user(user)


def authenticate(request: Request) -> Identity:
    """Require a valid bearer token for a live, active account.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(authenticate)): ...

    Raises NoToken, InvalidToken, TokenExpired or AccountDeactivated.
    """
    identity = _resolve_identity(request)
    request.state.identity = identity
    return identity


def optional_auth(request: Request) -> Identity | None:
    """Attach an identity when the request carries a valid token, else None.

    Never raises -- anonymous and badly-authenticated callers are treated the
    same. A store failure while loading the account also degrades to
    anonymous; it is logged with its traceback, never reported as a denial.
    """
    try:
        identity = _resolve_identity(request)
    except AccessError as exc:
        logger.debug("optional_auth: proceeding anonymously (%s)", exc.code)
        return None
    except SQLAlchemyError:
        logger.warning("optional_auth: account lookup failed, proceeding anonymously", exc_info=True)
        return None
    request.state.identity = identity
    return identity


def authorize(*allowed_roles: Role) -> Callable[[Request], Identity]:
    """Build a role gate dependency.

    Must be ordered after authenticate() (e.g. authenticate as a router-level
    dependency). The NotAuthenticated branch only fires if that ordering is
    broken.

        require_admin = authorize(Role.ADMIN)

        @router.get("/admin-only")
        def route(identity: Identity = Depends(require_admin)): ...
    """
    allowed = frozenset(allowed_roles)

    def role_gate(request: Request) -> Identity:
        identity: Identity | None = getattr(request.state, "identity", None)
        if identity is None:
            raise NotAuthenticated()
        if identity.role not in allowed:
            logger.warning("Role gate denied %s (role=%s) on %s", identity.id, identity.role.value, request.url.path)
            raise Forbidden()
        return identity

    return role_gate


require_admin = authorize(Role.ADMIN)
