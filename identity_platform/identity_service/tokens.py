"""
Identity token issuance and verification.

Tokens are JWTs carrying ``email``, ``iat`` and ``exp`` (plus ``iss`` when an
issuer is configured). The header names the signing key through ``kid`` so
that tokens signed by the previous key keep verifying during a rotation.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
import logging

import jwt
from pydantic import BaseModel, StrictStr, ValidationError

from .errors import MalformedClaims, TokenExpired, TokenInvalid

logger = logging.getLogger(__name__)


class TokenSigningError(Exception):
    """Raised when a token cannot be signed."""


@dataclass(frozen=True)
class SigningKey:
    kid: str
    secret: str


@dataclass(frozen=True)
class SigningKeyRing:
    current: SigningKey
    previous: Optional[SigningKey] = None

    def keys(self) -> List[SigningKey]:
        return [k for k in (self.current, self.previous) if k is not None]

    def find(self, kid: str) -> Optional[SigningKey]:
        for key in self.keys():
            if key.kid == kid:
                return key
        return None


class TokenClaims(BaseModel):
    email: StrictStr
    iat: int
    exp: int
    iss: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    def __init__(
        self,
        keys: SigningKeyRing,
        *,
        ttl: timedelta = timedelta(minutes=60),
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
        leeway: timedelta = timedelta(seconds=30),
    ):
        self._keys = keys
        self.ttl = ttl
        self.algorithm = algorithm
        self.issuer = issuer
        self._clock = clock
        # Tolerated clock skew between the issuing and verifying instances
        self.leeway = leeway

    @property
    def keys(self) -> SigningKeyRing:
        return self._keys

    def rotate(self, new_key: SigningKey) -> None:
        """Make ``new_key`` current; the old current key stays valid as previous."""
        self._keys = SigningKeyRing(current=new_key, previous=self._keys.current)
        logger.info("Token signing key rotated: current=%s previous=%s", new_key.kid, self._keys.previous.kid)

    def issue(self, email: str) -> str:
        now = self._clock()
        payload: Dict[str, Any] = {
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        if self.issuer:
            payload["iss"] = self.issuer
        key = self._keys.current
        try:
            return jwt.encode(payload, key.secret, algorithm=self.algorithm, headers={"kid": key.kid})
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as exc:
            raise TokenSigningError(str(exc)) from exc

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Check the signature, then expiry, and return the raw claim map.

        Raises:
            TokenInvalid: malformed token, unknown key or bad signature
            TokenExpired: correctly signed token past its expiry
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise TokenInvalid("malformed token") from exc

        kid = header.get("kid")
        if kid is None:
            candidates = self._keys.keys()
        else:
            key = self._keys.find(kid)
            if key is None:
                raise TokenInvalid("unknown signing key")
            candidates = [key]

        options = {"require": ["exp", "iat"]}
        for key in candidates:
            try:
                return jwt.decode(
                    token,
                    key.secret,
                    algorithms=[self.algorithm],
                    issuer=self.issuer,
                    leeway=self.leeway,
                    options=options,
                )
            except jwt.InvalidSignatureError:
                continue
            except jwt.ExpiredSignatureError as exc:
                # PyJWT only checks exp once the signature verified
                raise TokenExpired() from exc
            except jwt.PyJWTError as exc:
                raise TokenInvalid() from exc
        raise TokenInvalid("signature mismatch")

    def extract_claims(self, claims: Dict[str, Any]) -> TokenClaims:
        try:
            return TokenClaims.model_validate(claims)
        except ValidationError as exc:
            raise MalformedClaims() from exc

    def extract_email(self, claims: Dict[str, Any]) -> str:
        return self.extract_claims(claims).email


def build_token_service(settings) -> TokenService:
    previous = None
    if settings.TOKEN_PREVIOUS_SECRET:
        previous = SigningKey(kid=settings.TOKEN_PREVIOUS_KEY_ID, secret=settings.TOKEN_PREVIOUS_SECRET)
    keys = SigningKeyRing(
        current=SigningKey(kid=settings.TOKEN_KEY_ID, secret=settings.TOKEN_SECRET),
        previous=previous,
    )
    return TokenService(
        keys,
        ttl=timedelta(minutes=settings.TOKEN_TTL_MINUTES),
        algorithm=settings.TOKEN_ALGORITHM,
        issuer=settings.TOKEN_ISSUER,
        leeway=timedelta(seconds=settings.TOKEN_LEEWAY_SECONDS),
    )
