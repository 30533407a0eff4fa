from core.database import SessionLocal
from typing import Annotated
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from jose import JWTError
from core.config import settings, SessionPolicy
from core.errors import AuthError, AuthErrorKind
from models.auth_tokens import TokenType
from services.session_manager import SessionManager
from services.token_cleanup import TokenCleanupWorker
from services.token_store import TokenStore
from utils.signing import JwtSigner

session_policy = SessionPolicy.from_settings(settings)
token_signer = JwtSigner.from_settings(settings)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_session_manager(db: db_dependency) -> SessionManager:
    return SessionManager(db, session_policy, token_signer)

session_manager_dependency = Annotated[SessionManager, Depends(get_session_manager)]


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def get_current_user(token: Annotated[str, Depends(oauth2_scheme)], db: db_dependency):
    """
    Resolve the bearer access token. The signature alone is not enough:
    the token must also still be live in the store, so logout and admin
    revocation take effect immediately.
    """
    try:
        payload = token_signer.decode(token)
    except JWTError:
        raise AuthError(AuthErrorKind.INVALID_TOKEN, "Could not validate credentials.")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise AuthError(AuthErrorKind.INVALID_TOKEN, "Could not validate credentials.")

    if payload.get("type") != TokenType.ACCESS.value:
        raise AuthError(AuthErrorKind.INVALID_TOKEN, "Invalid token type. Access token required.")

    stored = TokenStore(db).get_by_value(token)
    if stored is None or not stored.is_valid:
        raise AuthError(AuthErrorKind.INVALID_TOKEN, "Token has been revoked or has expired.")

    return {
        "user_id": int(subject),
        "email": payload.get("email"),
        "user_role": payload.get("role"),
        "session_id": payload.get("sid"),
    }


user_dependency = Annotated[dict, Depends(get_current_user)]


def get_current_admin(user: user_dependency):
    if user.get("user_role") != "admin":
        raise AuthError(AuthErrorKind.FORBIDDEN)
    return user


admin_dependency = Annotated[dict, Depends(get_current_admin)]


def get_cleanup_worker(request: Request) -> TokenCleanupWorker:
    """The application's cleanup worker; admin sweeps share its single-flight lock."""
    return request.app.state.cleanup_worker


cleanup_worker_dependency = Annotated[TokenCleanupWorker, Depends(get_cleanup_worker)]
