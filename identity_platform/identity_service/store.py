from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from .models import User

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Store-level failure (connection, query, commit)."""


class UserNotFound(StoreError):
    pass


class EmailConflict(StoreError):
    """A row with the same email already exists."""


class CredentialStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> User:
        try:
            user = self.db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            raise StoreError(f"lookup failed: {e}") from e
        if user is None:
            raise UserNotFound(email)
        return user

    def exists(self, email: str) -> bool:
        """Advisory only: a concurrent insert can land right after this returns False."""
        try:
            return self.db.query(User.id).filter(User.email == email).first() is not None
        except SQLAlchemyError as e:
            raise StoreError(f"existence check failed: {e}") from e

    def insert(self, *, id: str, email: str, password_hash: str, first_name: str, last_name: str) -> User:
        user = User(
            id=id,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
        )
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise EmailConflict(email) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"insert failed: {e}") from e
        return user
