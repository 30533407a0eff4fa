from datetime import datetime, timedelta
from typing import Any, Iterable
from jose import jwt, JWTError
from core.config import Settings
from utils.timeutils import utcnow


class JwtSigner:
    """
    Signs and decodes access tokens with python-jose.

    Audience is checked against a set of accepted audiences rather than a
    single value, so decode() disables jose's own aud check and does it here.
    """

    def __init__(self, secret_key: str, algorithm: str, issuer: str, audiences: Iterable[str]):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.audiences = frozenset(audiences)

    @classmethod
    def from_settings(cls, settings: Settings) -> "JwtSigner":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audiences=settings.JWT_AUDIENCES,
        )

    def sign(self, claims: dict[str, Any], audience: str, ttl: timedelta,
             issued_at: datetime | None = None) -> str:
        """
        Sign claims for one audience.

        Args:
            claims: Application claims (sub, type, ...)
            audience: Value of the aud claim
            ttl: Lifetime; exp = issued_at + ttl
            issued_at: Defaults to now (UTC)

        Returns:
            Compact JWT string
        """
        issued_at = issued_at or utcnow()
        payload = {
            **claims,
            "iss": self.issuer,
            "aud": audience,
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify signature, expiry, issuer and audience.

        Raises:
            JWTError: If any check fails
        """
        payload = jwt.decode(
            token,
            self.secret_key,
            algorithms=[self.algorithm],
            issuer=self.issuer,
            options={"verify_aud": False},
        )
        if payload.get("aud") not in self.audiences:
            raise JWTError("Invalid audience")
        return payload
