from datetime import timedelta
import pytest
from core.config import Settings, SessionPolicy
from core.errors import AuthError, AuthErrorKind
from utils.logger import mask_token


@pytest.mark.parametrize("kind, status_code", [
    (AuthErrorKind.INVALID_CREDENTIALS, 401),
    (AuthErrorKind.DEVICE_LIMIT_EXCEEDED, 409),
    (AuthErrorKind.INVALID_TOKEN, 401),
    (AuthErrorKind.INVALID_AUDIENCE, 400),
    (AuthErrorKind.NOT_FOUND, 404),
    (AuthErrorKind.FORBIDDEN, 403),
])
def test_error_kind_status(kind, status_code):
    assert AuthError(kind).status_code == status_code


def test_error_payload_rendered_next_to_detail():
    error = AuthError(AuthErrorKind.DEVICE_LIMIT_EXCEEDED, max_devices=2, active_devices=[])

    assert error.to_dict() == {
        "detail": "Maximum number of active devices reached",
        "error": "device_limit_exceeded",
        "max_devices": 2,
        "active_devices": [],
    }


def test_custom_message():
    error = AuthError(AuthErrorKind.INVALID_TOKEN, "Invalid refresh token")
    assert str(error) == "Invalid refresh token"
    assert error.kind is AuthErrorKind.INVALID_TOKEN


def test_policy_from_settings():
    settings = Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="x" * 32,
        JWT_AUDIENCES=["web", "mobile"],
        ACCESS_TOKEN_EXPIRE_MINUTES=30,
        REFRESH_TOKEN_EXPIRE_DAYS=14,
        MAX_ACTIVE_DEVICES=4,
        TOKEN_RETENTION_MINUTES=60,
    )
    policy = SessionPolicy.from_settings(settings)

    assert policy.default_audience == "web"
    assert policy.audiences == ("web", "mobile")
    assert policy.access_token_ttl == timedelta(minutes=30)
    assert policy.refresh_token_ttl == timedelta(days=14)
    assert policy.max_devices == 4
    assert policy.retention == timedelta(hours=1)


def test_policy_requires_an_audience():
    settings = Settings(DATABASE_URL="sqlite://", SECRET_KEY="x" * 32, JWT_AUDIENCES=[])

    with pytest.raises(ValueError):
        SessionPolicy.from_settings(settings)


def test_mask_token():
    assert mask_token("abcdefghijklmnop") == "abcdefgh..."
    assert mask_token("short") == "***"
    assert mask_token(None) == "<empty>"
