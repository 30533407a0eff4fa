from datetime import timedelta
import pytest
from jose import jwt, JWTError
from utils.signing import JwtSigner
from utils.timeutils import utcnow

SECRET = "unit-test-secret-key-that-is-long-enough"


@pytest.fixture
def signer():
    return JwtSigner(SECRET, "HS256", "issuer-a", ["web-app", "mobile-app"])


def test_access_token_creation(signer):
    token = signer.sign({"sub": "1", "type": "access"}, "web-app", timedelta(minutes=5))
    assert token

    payload = signer.decode(token)
    assert payload["sub"] == "1"
    assert payload["type"] == "access"
    assert payload["aud"] == "web-app"
    assert payload["iss"] == "issuer-a"
    assert payload["exp"] - payload["iat"] == 300


def test_token_signed_with_secret_and_algorithm(signer):
    token = signer.sign({"sub": "7"}, "mobile-app", timedelta(minutes=5))

    payload = jwt.decode(token, SECRET, algorithms=["HS256"], audience="mobile-app")
    assert payload["sub"] == "7"


def test_token_expiration(signer):
    token = signer.sign(
        {"sub": "1"},
        "web-app",
        timedelta(minutes=1),
        issued_at=utcnow() - timedelta(hours=1)
    )

    with pytest.raises(JWTError):
        signer.decode(token)


def test_unknown_audience_rejected(signer):
    token = signer.sign({"sub": "1"}, "somebody-else", timedelta(minutes=5))

    with pytest.raises(JWTError):
        signer.decode(token)


def test_wrong_issuer_rejected(signer):
    other = JwtSigner(SECRET, "HS256", "issuer-b", ["web-app"])
    token = other.sign({"sub": "1"}, "web-app", timedelta(minutes=5))

    with pytest.raises(JWTError):
        signer.decode(token)


def test_wrong_secret_rejected(signer):
    other = JwtSigner("a-completely-different-secret-key-value", "HS256", "issuer-a", ["web-app"])
    token = other.sign({"sub": "1"}, "web-app", timedelta(minutes=5))

    with pytest.raises(JWTError):
        signer.decode(token)


def test_garbage_rejected(signer):
    with pytest.raises(JWTError):
        signer.decode("not-a-jwt")
