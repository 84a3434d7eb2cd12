from passlib.context import CryptContext

# argon2 salts every hash and is memory-hard; pbkdf2_sha256 digests are still
# accepted so existing rows keep verifying
DEFAULT_SCHEMES = ["argon2", "pbkdf2_sha256"]


class PasswordHasher:
    def __init__(self, schemes=None, **context_options):
        self._context = CryptContext(
            schemes=schemes or DEFAULT_SCHEMES,
            deprecated="auto",
            **context_options,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, digest: str, password: str) -> bool:
        if not digest:
            return False
        try:
            return self._context.verify(password, digest)
        except ValueError:
            # Unidentifiable or corrupt digest
            return False

    def dummy_verify(self) -> None:
        """Burn roughly one verify's worth of time for an unknown account."""
        self._context.dummy_verify()


password_hasher = PasswordHasher()
