import secrets
import uuid
from datetime import datetime
from typing import NamedTuple
from core.config import SessionPolicy
from core.errors import AuthError, AuthErrorKind
from models.auth_tokens import AuthToken, TokenType
from models.users import User
from schemas.auth_schemas import TokenResponse
from services.token_store import TokenStore
from utils.hashing import hash_token
from utils.signing import JwtSigner
from utils.timeutils import utcnow, ensure_utc
from utils.logger import get_logger

logger = get_logger(__name__)

ROTATION = "rotation"


class IssuedToken(NamedTuple):
    """A stored token record plus its raw value, which exists only at issue time."""
    record: AuthToken
    value: str

    def to_response(self) -> TokenResponse:
        return TokenResponse(
            token=self.value,
            type="Bearer" if self.record.token_type == TokenType.ACCESS else self.record.token_type.value,
            expires_at=ensure_utc(self.record.expires_at),
            created_at=ensure_utc(self.record.created_at),
        )


class TokenIssuer:
    """
    Mints access and refresh tokens and rotates refresh tokens.

    Access tokens are signed JWTs carrying their audience. Refresh tokens
    are opaque random strings; their audience is remembered in the store so
    a rotated pair keeps the audience of the session it replaces.
    """

    def __init__(self, store: TokenStore, signer: JwtSigner, policy: SessionPolicy):
        self.store = store
        self.signer = signer
        self.policy = policy

    def resolve_audience(self, client_id: str | None) -> str:
        """
        Raises:
            AuthError(INVALID_AUDIENCE): client_id is not a configured audience
        """
        if client_id is None:
            return self.policy.default_audience
        if client_id not in self.policy.audiences:
            logger.warning("Unknown client_id requested", extra={"client_id": client_id})
            raise AuthError(AuthErrorKind.INVALID_AUDIENCE, client_id=client_id)
        return client_id

    def _build_access(self, user: User, audience: str, paired_with: AuthToken | None = None,
                      issued_at: datetime | None = None) -> IssuedToken:
        issued_at = issued_at or utcnow()
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "type": TokenType.ACCESS.value,
            "jti": uuid.uuid4().hex,
        }
        session_id = None
        if paired_with is not None:
            session_id = paired_with.session_id or paired_with.id
            claims["sid"] = session_id

        value = self.signer.sign(claims, audience, self.policy.access_token_ttl, issued_at=issued_at)
        record = AuthToken(
            id=str(uuid.uuid4()),
            user_id=user.id,
            token_hash=hash_token(value),
            token_type=TokenType.ACCESS,
            audience=audience,
            paired_token_id=paired_with.id if paired_with is not None else None,
            session_id=session_id,
            created_at=issued_at,
            expires_at=issued_at + self.policy.access_token_ttl,
        )
        return IssuedToken(record, value)

    def _build_refresh(self, user_id: int, audience: str, device_name: str | None = None,
                       session_id: str | None = None,
                       session_started_at: datetime | None = None,
                       issued_at: datetime | None = None) -> IssuedToken:
        issued_at = issued_at or utcnow()
        value = secrets.token_urlsafe(64)
        token_id = str(uuid.uuid4())
        record = AuthToken(
            id=token_id,
            user_id=user_id,
            token_hash=hash_token(value),
            token_type=TokenType.REFRESH,
            audience=audience,
            device_name=device_name,
            # A new login starts a session named after its first refresh token
            session_id=session_id or token_id,
            session_started_at=session_started_at or issued_at,
            created_at=issued_at,
            expires_at=issued_at + self.policy.refresh_token_ttl,
        )
        return IssuedToken(record, value)

    def issue_access_token(self, user: User, audience: str,
                           paired_with: AuthToken | None = None) -> IssuedToken:
        issued = self._build_access(user, audience, paired_with)
        self.store.add(issued.record)
        return issued

    def issue_refresh_token(self, user_id: int, audience: str | None = None,
                            device_name: str | None = None) -> IssuedToken:
        issued = self._build_refresh(user_id, audience or self.policy.default_audience, device_name)
        self.store.add(issued.record)
        return issued

    def issue_pair(self, user: User, audience: str,
                   device_name: str | None = None) -> tuple[IssuedToken, IssuedToken]:
        """Add a fresh access/refresh pair to the store. Does not commit."""
        issued_at = utcnow()
        refresh = self._build_refresh(user.id, audience, device_name, issued_at=issued_at)
        access = self._build_access(user, audience, paired_with=refresh.record, issued_at=issued_at)
        self.store.add(refresh.record, access.record)
        return access, refresh

    def rotate(self, old_refresh: AuthToken, user: User) -> tuple[IssuedToken, IssuedToken]:
        """
        Replace a refresh token with a new pair. Single use: at most one
        rotation per refresh token can ever commit.

        Raises:
            AuthError(INVALID_TOKEN): old_refresh is not a valid refresh token,
                or a concurrent rotation claimed it first
        """
        if old_refresh.token_type != TokenType.REFRESH or not old_refresh.is_valid:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)

        old_id = old_refresh.id
        audience = old_refresh.audience or self.policy.default_audience
        issued_at = utcnow()
        refresh = self._build_refresh(
            user.id,
            audience,
            device_name=old_refresh.device_name,
            session_id=old_refresh.session_id or old_id,
            session_started_at=ensure_utc(old_refresh.session_started_at),
            issued_at=issued_at,
        )
        access = self._build_access(user, audience, paired_with=refresh.record, issued_at=issued_at)

        if not self.store.rotate(old_refresh, [refresh.record, access.record], ROTATION):
            logger.warning(
                "Refresh token already rotated or revoked",
                extra={"event": "refresh_replay", "user_id": user.id, "token_id": old_id}
            )
            raise AuthError(AuthErrorKind.INVALID_TOKEN)

        logger.info(
            "Refresh token rotated",
            extra={"user_id": user.id, "old_token_id": old_id, "new_token_id": refresh.record.id}
        )
        return access, refresh
