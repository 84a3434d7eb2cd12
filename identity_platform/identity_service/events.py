"""
Auth event notification: outbox, dispatcher and subscriber publishers.

Successful logins and signups produce one AuthEvent each. In ``outbox`` mode
the event is stored as a pending ``auth_events`` row and delivered later by
the dispatcher, so a subscriber outage never fails the caller. In
``fail_closed`` mode the event is published synchronously and a publish
failure fails the request.
"""
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, List, Optional, Protocol, Sequence
import logging
import uuid

import httpx
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import InternalError
from .models import AuthEventRecord, utcnow
from .utils.deadline import Deadline

logger = logging.getLogger(__name__)

PUBLISH_MODES = ("outbox", "fail_closed")


class PublishError(Exception):
    """Raised when an event could not be delivered to a subscriber."""


class AuthEventMessage(BaseModel):
    """Wire payload sent to subscribers. ``email`` is the only field they must read."""
    email: str
    event_type: str
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_record(cls, record: AuthEventRecord) -> "AuthEventMessage":
        occurred_at = record.created_at
        if occurred_at is not None and occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=timezone.utc)
        return cls(
            email=record.email,
            event_type=record.event_type,
            event_id=record.id,
            occurred_at=occurred_at,
        )


class EventPublisher(Protocol):
    def publish(self, message: AuthEventMessage, timeout: Optional[float] = None) -> None: ...


class HttpEventPublisher:
    """POSTs each event to every subscriber URL; any failure fails the publish."""

    def __init__(
        self,
        subscriber_urls: Sequence[str],
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.subscriber_urls = list(subscriber_urls)
        self.timeout = timeout
        self._transport = transport

    def publish(self, message: AuthEventMessage, timeout: Optional[float] = None) -> None:
        payload = message.model_dump(mode="json")
        effective_timeout = self.timeout if timeout is None else timeout
        with httpx.Client(timeout=effective_timeout, transport=self._transport) as client:
            for url in self.subscriber_urls:
                try:
                    response = client.post(url, json=payload)
                    response.raise_for_status()
                except (httpx.HTTPError, httpx.InvalidURL) as e:
                    raise PublishError(f"{url}: {e}") from e
        logger.debug("Published %s event %s to %d subscribers",
                     message.event_type, message.event_id, len(self.subscriber_urls))


class InMemoryEventPublisher:
    """Keeps published messages in memory; used when no subscriber is configured."""

    def __init__(self):
        self._messages: List[AuthEventMessage] = []
        self._lock = Lock()

    def publish(self, message: AuthEventMessage, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> List[AuthEventMessage]:
        with self._lock:
            return list(self._messages)


def build_publisher(settings) -> EventPublisher:
    if settings.EVENT_SUBSCRIBER_URLS:
        return HttpEventPublisher(settings.EVENT_SUBSCRIBER_URLS, timeout=settings.EVENT_PUBLISH_TIMEOUT_SECONDS)
    logger.info("No EVENT_SUBSCRIBER_URLS configured, auth events are kept in memory")
    return InMemoryEventPublisher()


class AuthEventNotifier:
    def __init__(self, db: Session, publisher: EventPublisher, *, mode: str = "outbox",
                 publish_timeout: float = 5.0):
        if mode not in PUBLISH_MODES:
            raise ValueError(f"Invalid publish mode '{mode}'. Must be one of: {', '.join(PUBLISH_MODES)}")
        self.db = db
        self.publisher = publisher
        self.mode = mode
        self.publish_timeout = publish_timeout

    def notify(self, email: str, event_type: str, deadline: Optional[Deadline] = None) -> None:
        if self.mode == "fail_closed":
            self._publish_now(email, event_type, deadline)
        else:
            self._enqueue(email, event_type)

    def _publish_now(self, email: str, event_type: str, deadline: Optional[Deadline]) -> None:
        timeout = self.publish_timeout
        if deadline is not None and deadline.remaining() is not None:
            timeout = min(timeout, deadline.remaining())
        message = AuthEventMessage(email=email, event_type=event_type)
        try:
            self.publisher.publish(message, timeout=timeout)
        except PublishError as e:
            logger.error("Failed to publish %s event for %s: %s", event_type, email, e)
            raise InternalError() from e

    def _enqueue(self, email: str, event_type: str) -> None:
        try:
            self.db.add(AuthEventRecord(email=email, event_type=event_type))
            self.db.commit()
        except SQLAlchemyError as e:
            # Notification is best-effort; the caller's login or signup already succeeded
            self.db.rollback()
            logger.warning("Failed to enqueue %s event for %s: %s", event_type, email, e)


class OutboxDispatcher:
    """Delivers pending outbox rows, oldest first, retrying on later runs."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        publisher: EventPublisher,
        *,
        max_attempts: int = 5,
        batch_size: int = 100,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.max_attempts = max_attempts
        self.batch_size = batch_size

    def dispatch_pending(self) -> int:
        """
        Try to deliver one batch of pending events.

        Returns:
            Number of events delivered in this run
        """
        db = self.session_factory()
        delivered = 0
        try:
            records = (
                db.query(AuthEventRecord)
                .filter(AuthEventRecord.status == "pending")
                .order_by(AuthEventRecord.created_at.asc())
                .limit(self.batch_size)
                .all()
            )
            for record in records:
                record.attempts += 1
                try:
                    self.publisher.publish(AuthEventMessage.from_record(record))
                except PublishError as e:
                    record.last_error = str(e)[:1000]
                    if record.attempts >= self.max_attempts:
                        record.status = "failed"
                        logger.error("Giving up on %s event %s after %d attempts: %s",
                                     record.event_type, record.id, record.attempts, e)
                    else:
                        logger.warning("Delivery of %s event %s failed (attempt %d): %s",
                                       record.event_type, record.id, record.attempts, e)
                else:
                    record.status = "delivered"
                    record.delivered_at = utcnow()
                    record.last_error = None
                    delivered += 1
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Outbox dispatch failed: %s", e)
        finally:
            db.close()
        return delivered
