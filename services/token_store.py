from contextlib import contextmanager
from datetime import datetime
from typing import Iterator
from sqlalchemy.orm import Session
from models.auth_tokens import AuthToken, TokenType, revocation_values
from utils.hashing import hash_token
from utils.timeutils import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)


class TokenStore:
    """
    Durable storage for issued tokens.

    Reads never mutate. Every revocation is a conditional UPDATE that only
    touches rows which are not yet revoked, so the rowcount tells the caller
    whether it won a race. Methods flush but do not commit unless stated;
    callers group writes with `transaction()`.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator["TokenStore"]:
        """Commit on success, roll back and re-raise on any error."""
        try:
            yield self
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def add(self, *tokens: AuthToken) -> None:
        self.db.add_all(tokens)
        self.db.flush()

    def get_by_value(self, value: str) -> AuthToken | None:
        if not value or not value.strip():
            return None
        return self.db.query(AuthToken).filter(AuthToken.token_hash == hash_token(value)).first()

    def get_by_id(self, token_id: str) -> AuthToken | None:
        if not token_id:
            return None
        return self.db.query(AuthToken).filter(AuthToken.id == token_id).first()

    def _active_query(self, user_id: int, token_type: TokenType | None = None):
        query = self.db.query(AuthToken).filter(
            AuthToken.user_id == user_id,
            AuthToken.is_revoked == False,
            AuthToken.expires_at > utcnow()
        )
        if token_type is not None:
            query = query.filter(AuthToken.token_type == token_type)
        return query

    def active_tokens(self, user_id: int, token_type: TokenType | None = None) -> list[AuthToken]:
        return self._active_query(user_id, token_type).order_by(AuthToken.created_at.desc()).all()

    def count_active(self, user_id: int, token_type: TokenType | None = None) -> int:
        return self._active_query(user_id, token_type).count()

    def revoke_if_valid(self, token_id: str, revoked_by: str, *, user_id: int | None = None,
                        token_type: TokenType | None = None) -> bool:
        """
        Atomically revoke one token if it is still valid.

        Returns:
            True if this call revoked it, False if it was missing, expired,
            already revoked, or did not match user_id/token_type
        """
        query = self.db.query(AuthToken).filter(
            AuthToken.id == token_id,
            AuthToken.is_revoked == False,
            AuthToken.expires_at > utcnow()
        )
        if user_id is not None:
            query = query.filter(AuthToken.user_id == user_id)
        if token_type is not None:
            query = query.filter(AuthToken.token_type == token_type)

        updated = query.update(revocation_values(revoked_by), synchronize_session=False)
        return updated == 1

    def revoke_session(self, session_id: str, revoked_by: str) -> int:
        """
        Revoke every remaining token of one login session, including access
        tokens minted before the session's latest rotation.
        """
        return self.db.query(AuthToken).filter(
            AuthToken.session_id == session_id,
            AuthToken.is_revoked == False
        ).update(revocation_values(revoked_by), synchronize_session=False)

    def revoke_all_for_user(self, user_id: int, revoked_by: str) -> int:
        return self.db.query(AuthToken).filter(
            AuthToken.user_id == user_id,
            AuthToken.is_revoked == False
        ).update(revocation_values(revoked_by), synchronize_session=False)

    def rotate(self, old: AuthToken, replacements: list[AuthToken], revoked_by: str) -> bool:
        """
        Insert the replacement tokens and revoke `old`, all in one transaction.

        The replacements are written first and the old token is claimed last
        with a conditional update. If another caller already claimed it the
        whole transaction is rolled back and nothing new survives.

        Returns:
            True if the rotation was committed
        """
        old_id = old.id
        try:
            self.add(*replacements)
            claimed = self.revoke_if_valid(old_id, revoked_by, token_type=TokenType.REFRESH)
            if not claimed:
                self.db.rollback()
                return False
            self.db.commit()
            return True
        except Exception:
            self.db.rollback()
            raise

    def delete_expired(self, cutoff: datetime, batch_size: int = 500) -> int:
        """
        Delete tokens that expired before `cutoff`, one committed batch at a time.

        An interrupted sweep keeps the batches it already committed and the
        next run picks up the rest. Revocation status is irrelevant here;
        unexpired tokens are never touched.
        """
        total = 0
        while True:
            ids = [
                row.id for row in self.db.query(AuthToken.id)
                .filter(AuthToken.expires_at < cutoff)
                .limit(batch_size)
                .all()
            ]
            if not ids:
                break

            deleted = self.db.query(AuthToken).filter(
                AuthToken.id.in_(ids)
            ).delete(synchronize_session=False)
            self.db.commit()
            total += deleted

            logger.debug(
                "Expired token batch deleted",
                extra={"deleted": deleted, "cutoff": cutoff.isoformat()}
            )

            if len(ids) < batch_size:
                break
        return total
