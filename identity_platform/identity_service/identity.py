from dataclasses import dataclass
from typing import Callable, Optional
import uuid

from .errors import Unauthenticated
from .tokens import TokenService


@dataclass(frozen=True)
class Identity:
    subject_id: str
    email: str


class IdentityMiddleware:
    """
    Resolves a bearer token into the caller's identity for protected endpoints.

    The subject id is minted per request and is not tied to any stored session.
    """

    def __init__(self, tokens: TokenService, new_subject_id: Callable[[], str] = lambda: str(uuid.uuid4())):
        self.tokens = tokens
        self._new_subject_id = new_subject_id

    def resolve(self, token: Optional[str]) -> Identity:
        if not token:
            raise Unauthenticated("invalid token")
        # TokenInvalid / TokenExpired are Unauthenticated subclasses and propagate as-is
        claims = self.tokens.verify(token)
        email = self.tokens.extract_email(claims)
        return Identity(subject_id=self._new_subject_id(), email=email)
