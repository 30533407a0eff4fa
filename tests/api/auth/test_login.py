from tests.conftest import TEST_PASSWORD, make_user
from models.users import User
from models.auth_tokens import AuthToken
from utils.deps import token_signer

CHROME_WINDOWS = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36")
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


async def test_login_success(client, user):
    """Test successful user login."""

    response = await client.post("/auth/login", json={
        "email": user.email,
        "password": TEST_PASSWORD
    }, headers={"User-Agent": CHROME_WINDOWS})

    assert response.status_code == 200

    data = response.json()
    assert data["user"]["id"] == user.id
    assert data["user"]["email"] == user.email
    assert data["access_token"]["type"] == "Bearer"
    assert data["refresh_token"]["type"] == "refresh"
    assert data["access_token"]["is_expired"] is False
    assert 0 < data["expires_in"] <= 15 * 60

    # Verify token claims
    payload = token_signer.decode(data["access_token"]["token"])

    assert payload["sub"] == str(user.id)
    assert payload["email"] == user.email
    assert payload["role"] == user.role
    assert payload["type"] == "access"
    assert payload["aud"] == "web-app"


async def test_login_wrong_password(client, user):
    """Test login with incorrect password."""

    response = await client.post("/auth/login", json={
        "email": user.email,
        "password": "WrongPassword123!"
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"
    assert response.json()["error"] == "invalid_credentials"
    assert response.headers["WWW-Authenticate"] == "Bearer"


async def test_login_nonexistent_user(client):
    """Unknown email looks exactly like a wrong password."""
    response = await client.post("/auth/login", json={
        "email": "nonexistent@example.com",
        "password": "Password123!"
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


async def test_login_inactive_user(client, session):
    """Test login with a deactivated account."""
    make_user(session, email="inactive@example.com", is_active=False)

    response = await client.post("/auth/login", json={
        "email": "inactive@example.com",
        "password": TEST_PASSWORD
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


async def test_login_missing_fields(client):
    response = await client.post("/auth/login", json={"email": "user@example.com"})
    assert response.status_code == 422


async def test_login_empty_password(client, user):
    response = await client.post("/auth/login", json={
        "email": user.email,
        "password": ""
    })
    assert response.status_code == 422


async def test_login_invalid_email(client):
    response = await client.post("/auth/login", json={
        "email": "not-an-email",
        "password": TEST_PASSWORD
    })
    assert response.status_code == 422


async def test_login_with_client_id(client, user):
    response = await client.post("/auth/login", json={
        "email": user.email,
        "password": TEST_PASSWORD,
        "client_id": "mobile-app"
    })

    assert response.status_code == 200
    payload = token_signer.decode(response.json()["access_token"]["token"])
    assert payload["aud"] == "mobile-app"


async def test_login_unknown_client_id(client, session, user):
    response = await client.post("/auth/login", json={
        "email": user.email,
        "password": TEST_PASSWORD,
        "client_id": "unknown-client"
    })

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_audience"
    assert session.query(AuthToken).count() == 0


async def test_device_limit_and_eviction(client, session):
    """
    Limit 2: two logins succeed, the third is refused with the active device
    list, and the retry naming one of them evicts it.
    """
    user = make_user(session, max_devices=2)
    credentials = {"email": user.email, "password": TEST_PASSWORD}

    first = await client.post("/auth/login", json=credentials, headers={"User-Agent": CHROME_WINDOWS})
    second = await client.post("/auth/login", json=credentials, headers={"User-Agent": FIREFOX_LINUX})
    assert first.status_code == 200
    assert second.status_code == 200

    refused = await client.post("/auth/login", json=credentials)

    assert refused.status_code == 409
    body = refused.json()
    assert body["error"] == "device_limit_exceeded"
    assert body["detail"] == "Maximum number of active devices reached"
    assert body["max_devices"] == 2
    assert len(body["active_devices"]) == 2
    device_names = {d["device_name"] for d in body["active_devices"]}
    assert device_names == {"Chrome on Windows", "Firefox on Linux"}

    chrome = next(d for d in body["active_devices"] if d["device_name"] == "Chrome on Windows")
    retry = await client.post("/auth/login", json={**credentials, "device_id_to_revoke": chrome["id"]})

    assert retry.status_code == 200

    # The evicted device can no longer refresh
    evicted = await client.post("/auth/refresh", json={
        "refresh_token": first.json()["refresh_token"]["token"]
    })
    assert evicted.status_code == 401

    still_active = await client.post("/auth/refresh", json={
        "refresh_token": second.json()["refresh_token"]["token"]
    })
    assert still_active.status_code == 200


async def test_eviction_of_unknown_device(client, session):
    user = make_user(session, max_devices=1)
    credentials = {"email": user.email, "password": TEST_PASSWORD}
    await client.post("/auth/login", json=credentials)
    tokens_before = session.query(AuthToken).count()

    response = await client.post("/auth/login", json={**credentials, "device_id_to_revoke": "no-such-device"})

    assert response.status_code == 404
    assert response.json()["device_id"] == "no-such-device"
    assert session.query(AuthToken).count() == tokens_before


async def test_login_email_case_insensitive(client, session):
    make_user(session, email="casetest@example.com")

    response = await client.post("/auth/login", json={
        "email": "CaseTest@Example.com",
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200
    assert session.query(User).count() == 1
