from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from app.core.security import create_access_token
from app.db.base import get_db
from app.services.auth import get_auth_service
from app.utils.errors import DeliveryError
from main import app

from tests.conftest import count_accounts


@pytest.fixture
def api(db_session, bypass_service):
    holder = {"service": bypass_service}

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_service] = lambda: holder["service"]
    yield holder
    app.dependency_overrides = {}


@pytest.fixture
def client(api):
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


SIGNUP = {"name": "A", "email": "a@x.com", "phone": "555", "password": "pw1"}


@pytest.mark.asyncio
async def test_signup_verify_login_profile(client):
    response = await client.post("/api/auth/signup", json=SIGNUP)
    assert response.status_code == 200
    assert response.json() == {"message": "OTP generated (skipped email)", "otp": "123456"}

    response = await client.post("/api/auth/verify-otp", json={"email": "a@x.com", "otp": "123456"})
    assert response.status_code == 200
    assert response.json() == {"message": "Account verified successfully"}

    response = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw1"})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert set(body["user"]) == {"id", "name", "email", "phone"}

    response = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {body['token']}"})
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] == body["user"]["id"]
    assert "hashed_password" not in user
    assert "otp_code" not in user


@pytest.mark.asyncio
async def test_signup_accepts_legacy_number_field(client):
    payload = {"name": "A", "email": "a@x.com", "number": "555", "password": "pw1"}
    response = await client.post("/api/auth/signup", json=payload)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_fields_is_400(client):
    response = await client.post("/api/auth/signup", json={"email": "a@x.com"})
    assert response.status_code == 400
    assert response.json() == {"message": "All fields are required"}


@pytest.mark.asyncio
async def test_duplicate_verified_signup(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    await client.post("/api/auth/verify-otp", json={"email": "a@x.com", "otp": "123456"})

    response = await client.post("/api/auth/signup", json=SIGNUP)
    assert response.status_code == 400
    assert response.json() == {"message": "Email already registered"}


@pytest.mark.asyncio
async def test_login_before_verification_is_403(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    response = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw1"})
    assert response.status_code == 403
    assert response.json() == {"message": "Email not verified"}


@pytest.mark.asyncio
async def test_verify_unknown_user_is_404(client):
    response = await client.post("/api/auth/verify-otp", json={"email": "nobody@x.com", "otp": "123456"})
    assert response.status_code == 404
    assert response.json() == {"message": "User not found"}


@pytest.mark.asyncio
async def test_delivery_failure_payload(client, api, service, dispatcher):
    api["service"] = service
    dispatcher.send_otp.side_effect = DeliveryError(error="smtp down")

    response = await client.post("/api/auth/signup", json=SIGNUP)
    assert response.status_code == 500
    assert response.json() == {"message": "Signup failed (email)", "error": "smtp down"}


@pytest.mark.asyncio
async def test_profile_requires_token(client):
    response = await client.get("/api/auth/profile")
    assert response.status_code == 401
    assert response.json() == {"message": "No token provided"}


@pytest.mark.asyncio
async def test_profile_rejects_expired_token(client):
    token = create_access_token("someone", expires_delta=timedelta(seconds=-10))
    response = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_profile_for_unknown_account(client):
    token = create_access_token("missing-id")
    response = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_concurrent_signup_conflict_does_not_leak_row_data(client, store, db_session):
    await store.create_account("a@x.com", "Other", "999", "$2b$04$existinghash", verified=False)
    # The competing request inserted the row after this one looked it up
    store.find_by_email = AsyncMock(return_value=None)

    response = await client.post("/api/auth/signup", json=SIGNUP)

    assert response.status_code == 500
    assert response.json() == {"message": "Signup failed"}
    assert "$2b$" not in response.text
    assert "123456" not in response.text
    assert count_accounts(db_session) == 1
