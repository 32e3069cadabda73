"""
core/errors.py -- Access-control outcome taxonomy.

Every denial the auth and task layers can produce is an AccessError subclass
carrying a machine-readable code, a human message and the HTTP status the API
layer renders it with. api/main.py registers one exception handler for the
whole hierarchy, so auth/ and tasks/ never import FastAPI's HTTPException for
policy outcomes.

Store-layer failures (SQLAlchemyError and friends) are deliberately NOT part
of this hierarchy. They propagate to the generic 500 handler and are never
reported as Forbidden or NotFound.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations


class AccessError(Exception):
    """Base class for terminal, caller-visible access-control failures."""

    code: str = "access_error"
    status_code: int = 400
    default_message: str = "Request denied."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Token / session failures
# ---------------------------------------------------------------------------


class NoToken(AccessError):
    code = "no_token"
    status_code = 401
    default_message = "Access denied. No token provided."


class InvalidToken(AccessError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid token."


class TokenExpired(AccessError):
    code = "token_expired"
    status_code = 401
    default_message = "Token expired."


class WrongTokenType(AccessError):
    code = "wrong_token_type"
    status_code = 401
    default_message = "Token is not a refresh token."


class InvalidUser(AccessError):
    code = "invalid_user"
    status_code = 401
    default_message = "User not found or inactive."


class InvalidCredentials(AccessError):
    code = "bad_credentials"
    status_code = 401
    default_message = "Invalid email or password."


class AccountDeactivated(AccessError):
    code = "account_deactivated"
    status_code = 403
    default_message = "Account is deactivated."


# ---------------------------------------------------------------------------
# Authorization failures
# ---------------------------------------------------------------------------


class NotAuthenticated(AccessError):
    code = "not_authenticated"
    status_code = 401
    default_message = "Authentication required."


class Forbidden(AccessError):
    code = "forbidden"
    status_code = 403
    default_message = "You do not have permission to perform this action."


class AdminRequired(AccessError):
    code = "admin_required"
    status_code = 403
    default_message = "Admin access required."


class NotFound(AccessError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found."


# ---------------------------------------------------------------------------
# Store conflicts
# ---------------------------------------------------------------------------


class DuplicateEmail(AccessError):
    code = "email_exists"
    status_code = 409
    default_message = "User with this email already exists."
