from sqlalchemy import Column, Integer, String, DateTime, Text, Enum, Index
from datetime import datetime, timezone
from .db import Base
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Stored lower-cased; the unique index is the authoritative uniqueness check
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String)
    last_name = Column(String)
    created_at = Column(DateTime, default=utcnow, nullable=False)


EVENT_TYPES = ("login_success", "account_created")
EVENT_STATUSES = ("pending", "delivered", "failed")


class AuthEventRecord(Base):
    """
    Outbox row for an auth event awaiting delivery to subscribers.
    """
    __tablename__ = "auth_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, nullable=False)
    event_type = Column(Enum(*EVENT_TYPES, name="auth_event_type"), nullable=False)
    status = Column(Enum(*EVENT_STATUSES, name="auth_event_status"), default="pending", nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    delivered_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_auth_events_status_created_at', 'status', 'created_at'),
        Index('ix_auth_events_event_type', 'event_type'),
    )

    def to_dict(self) -> dict:
        """
        Serialize the outbox row for the dev monitor.

        Returns:
            Dictionary with all event fields, datetimes in ISO 8601 format
        """
        return {
            "id": str(self.id),
            "email": self.email,
            "event_type": self.event_type,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
        }
