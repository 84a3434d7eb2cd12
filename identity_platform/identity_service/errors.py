"""
Error taxonomy shared by every Identity Service operation.

Each error carries a stable machine-readable ``kind`` and the HTTP status it
maps to. Messages are safe to return to callers; infrastructure detail is
logged, never attached.
"""
from typing import Optional


class IdentityServiceError(Exception):
    kind = "internal"
    status_code = 500
    default_message = "internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(IdentityServiceError):
    kind = "invalid_argument"
    status_code = 400
    default_message = "invalid argument"


class Unauthenticated(IdentityServiceError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "invalid credentials"


class TokenInvalid(Unauthenticated):
    """Malformed, forged or unknown-key token. Terminal."""
    kind = "invalid_token"
    default_message = "invalid token"


class MalformedClaims(TokenInvalid):
    default_message = "token claims are malformed"


class TokenExpired(Unauthenticated):
    kind = "expired_token"
    default_message = "token expired"


class AlreadyExists(IdentityServiceError):
    kind = "already_exists"
    status_code = 409
    default_message = "email already exists"


class InternalError(IdentityServiceError):
    pass
