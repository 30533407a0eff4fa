from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from jose import JWTError
from core.config import settings
from utils.deps import token_signer


def get_user_id(request: Request):
    """Rate limit per authenticated user, falling back to the client IP."""
    token = request.headers.get("Authorization")
    if token:
        try:
            token = token.replace("Bearer ", "")
            payload = token_signer.decode(token)
            user_id = payload.get("sub")
            if user_id:
                return f"user:{user_id}"
        except JWTError:
            pass

    return get_remote_address(request)


# Failed-attempt lockout policy, applied to the login endpoint
LOGIN_RATE_LIMIT = f"{settings.MAX_FAILED_LOGIN_ATTEMPTS} per {settings.LOCKOUT_MINUTES} minutes"

limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
