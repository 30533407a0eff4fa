from sqlalchemy.orm import Session
from core.errors import AuthError, AuthErrorKind
from models.users import User
from utils.hashing import verify_password
from utils.logger import get_logger

logger = get_logger(__name__)


class CredentialVerifier:
    """
    Checks email/password against the user store. Read-only.

    Every failure surfaces as the same INVALID_CREDENTIALS error so callers
    cannot tell a missing account from a wrong password; the logs keep the
    distinction.
    """

    def __init__(self, db: Session):
        self.db = db

    def verify(self, email: str, password: str) -> User:
        normalized = email.lower().strip()
        user = self.db.query(User).filter(User.email == normalized).first()

        if not user:
            logger.warning(
                "Login failed - user not found",
                extra={"event": "login_failed", "email": normalized}
            )
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        if not user.is_active:
            logger.warning(
                "Login failed - inactive account",
                extra={"event": "login_failed", "user_id": user.id, "email": normalized}
            )
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        if not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed - invalid password",
                extra={"event": "login_failed", "user_id": user.id, "email": normalized}
            )
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": normalized}
        )
        return user

    def get_active_user(self, user_id: int) -> User | None:
        return self.db.query(User).filter(User.id == user_id, User.is_active == True).one_or_none()
