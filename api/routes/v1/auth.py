"""
api/routes/v1/auth.py -- Authentication and account management REST endpoints.

Routes:
  POST  /api/v1/auth/register        -- create a USER account; returns token pair
  POST  /api/v1/auth/login           -- password login; returns token pair
  POST  /api/v1/auth/refresh         -- exchange refresh token for a new pair
  POST  /api/v1/auth/logout          -- acknowledge logout (requires auth)
  GET   /api/v1/auth/profile         -- current account + task count (requires auth)
  GET   /api/v1/auth/users           -- list accounts (admin only)
  PATCH /api/v1/auth/users/{id}      -- activate / deactivate (admin only)

Security:
  [H2] /login and /register are rate-limited per IP (Settings.*_rate_limit).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M4] PATCH /users/{id} blocks self-deactivation.
  [M5] Cache-Control: no-store on every response carrying tokens.

Logout is stateless: there is no server-side revocation list, so the
endpoint only tells the client to discard its tokens. Issued tokens stay
valid until they expire.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
    UserPatch,
    UserResponse,
)
from auth.dependencies import authenticate, require_admin
from auth.models import Identity, Role, User
from auth.store import UserStore
from auth.tokens import TokenPair, TokenService, authenticate_user, hash_password
from core.config import get_settings
from core.errors import AccessError, NotFound
from tasks.models import TaskFilter
from tasks.store import TaskStore

logger = logging.getLogger("taskboard.api.auth")

_settings = get_settings()

# Auth policy:
# - POST  /api/v1/auth/register:      public
# - POST  /api/v1/auth/login:         public
# - POST  /api/v1/auth/refresh:       public -- the refresh token is the credential
# - POST  /api/v1/auth/logout:        requires auth (authenticate)
# - GET   /api/v1/auth/profile:       requires auth (authenticate)
# - GET   /api/v1/auth/users:         requires admin (authenticate + require_admin)
# - PATCH /api/v1/auth/users/{id}:    requires admin (authenticate + require_admin)
router = APIRouter()


class SelfDeactivation(AccessError):
    code = "self_deactivation"
    status_code = 400
    default_message = "You cannot deactivate your own account."


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"  # [M5]


def _auth_response(user: User, pair: TokenPair) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.from_user(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=pair.expires_in,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)  # [H2]
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create a USER account and sign the caller in.

    Duplicate emails (compared case-insensitively) are rejected with 409 by
    the store's UNIQUE constraint, not by a pre-check.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.tokens

    user = user_store.create_user(
        User(
            email=body.email,
            hashed_password=hash_password(body.password),
            first_name=body.first_name,
            last_name=body.last_name,
            role=Role.USER,
        )
    )
    logger.info("Registered user %s", user.id)
    _no_store(response)
    return _auth_response(user, tokens.issue(user.id, user.role))


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2] brute-force mitigation
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password; return a token pair.

    Uses authenticate_user() which includes timing equalization [C1]. Wrong
    email and wrong password produce the same bad_credentials error.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.tokens

    _no_store(response)
    user = authenticate_user(user_store, body.email, body.password)
    user_store.update_last_login(user.id)
    logger.info("Login succeeded for %s", user.id)
    user = user_store.find_by_id(user.id) or user
    return _auth_response(user, tokens.issue(user.id, user.role))


@router.post("/auth/refresh", response_model=TokenPairResponse)
@limiter.limit(_settings.login_rate_limit)
def refresh(request: Request, response: Response, body: RefreshRequest) -> TokenPairResponse:
    """Exchange a refresh token for a new pair carrying the account's current role."""
    tokens: TokenService = request.app.state.tokens
    _no_store(response)
    pair = tokens.refresh(body.refresh_token)
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(identity: Identity = Depends(authenticate)) -> MessageResponse:
    """Acknowledge logout. The client must discard both tokens."""
    logger.info("Logout for %s", identity.id)
    return MessageResponse(message="Logged out successfully.")


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(request: Request, identity: Identity = Depends(authenticate)) -> ProfileResponse:
    """Return the current account with the number of tasks it owns."""
    user_store: UserStore = request.app.state.user_store
    task_store: TaskStore = request.app.state.task_store

    user = user_store.find_by_id(identity.id)
    if user is None:
        raise NotFound("User not found.")
    base = UserResponse.from_user(user)
    return ProfileResponse(**base.model_dump(), task_count=task_store.count(TaskFilter(owner_id=user.id)))


# ---------------------------------------------------------------------------
# Account management (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse], dependencies=[Depends(authenticate)])
def list_users(request: Request, admin: Identity = Depends(require_admin)) -> list[UserResponse]:
    """List all accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.patch("/auth/users/{user_id}", response_model=UserResponse, dependencies=[Depends(authenticate)])
def update_user(
    request: Request,
    user_id: str,
    body: UserPatch,
    admin: Identity = Depends(require_admin),
) -> UserResponse:
    """Activate or deactivate an account. Admin only.

    Deactivation takes effect on the account's next authenticated request
    and on its next refresh. Already-issued access tokens still verify
    cryptographically until they expire, but the guard rejects them because
    it re-reads the active flag.

    [M4] Self-deactivation is refused. The caller is itself an active admin,
    so deactivating any other account can never remove the last one.
    """
    user_store: UserStore = request.app.state.user_store

    target = user_store.find_by_id(user_id)
    if target is None:
        raise NotFound("User not found.")

    if not body.is_active and target.id == admin.id:
        raise SelfDeactivation()

    user_store.update_user(user_id, is_active=body.is_active)
    logger.warning("Admin %s set is_active=%s on user %s", admin.id, body.is_active, user_id)
    return UserResponse.from_user(user_store.find_by_id(user_id))
