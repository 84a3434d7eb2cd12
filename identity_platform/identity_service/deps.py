"""
FastAPI dependency wiring for the Identity Service.

Process-wide collaborators (token service, publisher) are built once from
settings; per-request ones (store, notifier, gateway) get the request's
database session. Tests swap any of them through ``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .config import settings
from .db import SessionLocal, get_db
from .events import AuthEventNotifier, EventPublisher, OutboxDispatcher, build_publisher
from .gateway import AuthGateway
from .identity import Identity, IdentityMiddleware
from .passwords import PasswordHasher, password_hasher
from .store import CredentialStore
from .tokens import TokenService, build_token_service
from .utils.deadline import Deadline


@lru_cache
def get_token_service() -> TokenService:
    return build_token_service(settings)


@lru_cache
def get_event_publisher() -> EventPublisher:
    return build_publisher(settings)


def get_password_hasher() -> PasswordHasher:
    return password_hasher


def get_dispatcher(publisher: EventPublisher = Depends(get_event_publisher)) -> OutboxDispatcher:
    return OutboxDispatcher(
        SessionLocal,
        publisher,
        max_attempts=settings.EVENT_MAX_ATTEMPTS,
        batch_size=settings.EVENT_DISPATCH_BATCH_SIZE,
    )


def get_notifier(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> AuthEventNotifier:
    return AuthEventNotifier(
        db,
        publisher,
        mode=settings.EVENT_PUBLISH_MODE,
        publish_timeout=settings.EVENT_PUBLISH_TIMEOUT_SECONDS,
    )


def get_gateway(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
    notifier: AuthEventNotifier = Depends(get_notifier),
) -> AuthGateway:
    return AuthGateway(CredentialStore(db), hasher, tokens, notifier)


def get_deadline(
    timeout_ms: Optional[str] = Header(default=None, alias="X-Request-Timeout-Ms"),
) -> Deadline:
    return Deadline.from_request(settings.REQUEST_TIMEOUT_SECONDS, timeout_ms)


def get_identity_middleware(tokens: TokenService = Depends(get_token_service)) -> IdentityMiddleware:
    return IdentityMiddleware(tokens)


def get_bearer_token(authorization: Optional[str] = Header(default=None, alias="Authorization")) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip()


def require_identity(
    token: Optional[str] = Depends(get_bearer_token),
    middleware: IdentityMiddleware = Depends(get_identity_middleware),
) -> Identity:
    """Dependency for protected endpoints in any service mounting these routes."""
    return middleware.resolve(token)
