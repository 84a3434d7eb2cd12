from typing import Optional
import logging
import re
import uuid

from .errors import AlreadyExists, InternalError, InvalidArgument, Unauthenticated
from .events import AuthEventNotifier
from .passwords import PasswordHasher
from .store import CredentialStore, EmailConflict, StoreError, UserNotFound
from .tokens import TokenService, TokenSigningError
from .utils.deadline import Deadline, DeadlineExceeded

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthGateway:
    """
    Orchestrates Authenticate, CreateAccount and ValidateToken over the
    credential store, password hasher, token service and event notifier.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        notifier: AuthEventNotifier,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.notifier = notifier

    def authenticate(self, email: str, password: str, deadline: Optional[Deadline] = None) -> str:
        deadline = deadline or Deadline()
        email = normalize_email(email)
        try:
            deadline.check("user lookup")
            try:
                user = self.store.find_by_email(email)
            except UserNotFound:
                self.hasher.dummy_verify()
                logger.info("AUTH login_failure email=%s reason=unknown_email", email)
                raise Unauthenticated("invalid credentials")

            if not self.hasher.verify(user.password_hash, password):
                logger.info("AUTH login_failure email=%s reason=bad_password", email)
                raise Unauthenticated("invalid credentials")

            token = self.tokens.issue(email)
            deadline.check("event publish")
            self.notifier.notify(email, "login_success", deadline)
        except StoreError as e:
            logger.error("Authenticate failed for %s: %s", email, e)
            raise InternalError() from e
        except TokenSigningError as e:
            logger.error("Could not sign token for %s: %s", email, e)
            raise InternalError() from e
        except DeadlineExceeded as e:
            logger.warning("Authenticate for %s aborted: %s", email, e)
            raise InternalError() from e

        logger.info("AUTH login_success email=%s", email)
        return token

    def create_account(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        deadline: Optional[Deadline] = None,
    ) -> str:
        deadline = deadline or Deadline()
        if not is_valid_email(email.strip()):
            raise InvalidArgument("invalid email format")
        email = normalize_email(email)

        try:
            # Fast path only; the unique constraint on users.email decides races
            deadline.check("existence check")
            if self.store.exists(email):
                raise AlreadyExists("email already exists")

            password_hash = self.hasher.hash(password)
            deadline.check("user insert")
            try:
                self.store.insert(
                    id=str(uuid.uuid4()),
                    email=email,
                    password_hash=password_hash,
                    first_name=first_name,
                    last_name=last_name,
                )
            except EmailConflict:
                logger.info("Concurrent signup lost the race for %s", email)
                raise AlreadyExists("email already exists")

            token = self.tokens.issue(email)
            deadline.check("event publish")
            self.notifier.notify(email, "account_created", deadline)
        except StoreError as e:
            logger.error("CreateAccount failed for %s: %s", email, e)
            raise InternalError("could not create user") from e
        except TokenSigningError as e:
            logger.error("Could not sign token for %s: %s", email, e)
            raise InternalError() from e
        except DeadlineExceeded as e:
            logger.warning("CreateAccount for %s aborted: %s", email, e)
            raise InternalError() from e

        logger.info("AUTH account_created email=%s", email)
        return token

    def validate_token(self, token: str) -> str:
        """Return the email a token asserts; raises TokenInvalid or TokenExpired."""
        claims = self.tokens.verify(token)
        return self.tokens.extract_email(claims)
