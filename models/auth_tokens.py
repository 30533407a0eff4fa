import enum
import uuid
from core.database import Base
from sqlalchemy import Column, Boolean, DateTime, String, Integer, ForeignKey, Index, Enum
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin
from utils.timeutils import utcnow, ensure_utc


class TokenType(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


def _new_token_id() -> str:
    return str(uuid.uuid4())


class AuthToken(Base, CreatedAtMixin):
    """
    An issued credential, access or refresh.

    Only the SHA-256 hash of the token value is stored. A live refresh token
    is one logged-in device; its id is the device id. Access tokens point at
    the refresh token they were issued with through paired_token_id.

    session_id is fixed at login and shared by every token of that login,
    across rotations, so ending a session reaches access tokens minted
    before the latest rotation too.

    Rows are never un-revoked and are only deleted by the cleanup sweep once
    expired.
    """
    __tablename__ = "auth_tokens"

    #pk
    id = Column(String(36), primary_key=True, default=_new_token_id)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    paired_token_id = Column(String(36), nullable=True, index=True)
    session_id = Column(String(36), nullable=True, index=True)

    #relationships
    user = relationship("User", back_populates="auth_tokens")

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    token_type = Column(
        Enum(TokenType, name="token_type", native_enum=False,
             values_callable=lambda members: [m.value for m in members]),
        nullable=False
    )
    audience = Column(String(255), nullable=True)
    device_name = Column(String(255), nullable=True)
    session_started_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_auth_tokens_user_type", "user_id", "token_type"),
    )

    @property
    def is_expired(self) -> bool:
        return utcnow() > ensure_utc(self.expires_at)

    @property
    def is_valid(self) -> bool:
        return not self.is_revoked and not self.is_expired

    def __repr__(self):
        return f"<AuthToken id={self.id} user_id={self.user_id} type={self.token_type} revoked={self.is_revoked}>"


def revocation_values(revoked_by: str) -> dict:
    """
    Column values for revoking a token. Store updates always pair these with
    an `is_revoked == False` filter so a revocation is never overwritten.
    """
    return {
        AuthToken.is_revoked: True,
        AuthToken.revoked_at: utcnow(),
        AuthToken.revoked_by: revoked_by,
    }
