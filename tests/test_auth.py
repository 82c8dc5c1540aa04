"""Tests for authentication."""
import pytest
from app.services.auth_service import AuthService
from app.utils.security import verify_password, create_access_token, decode_token


def test_password_hashing():
    """Test password hashing and verification."""
    password = "testpassword123"
    hashed = AuthService.hash_password(password)

    assert hashed != password
    assert verify_password(password, hashed)
    assert not verify_password("wrongpassword", hashed)


def test_jwt_token_creation():
    """Test JWT token creation and decoding."""
    data = {"sub": "user123", "email": "test@example.com"}
    token = create_access_token(data)

    assert isinstance(token, str)

    decoded = decode_token(token)
    assert decoded["sub"] == "user123"
    assert decoded["email"] == "test@example.com"
    assert decoded["type"] == "access"


def test_invalid_token_is_rejected():
    with pytest.raises(ValueError):
        decode_token("not-a-token")


@pytest.mark.asyncio
async def test_authenticate_user(db_session, annotator):
    """Test user authentication."""
    user = await AuthService.authenticate_user(db_session, "annotator@example.com", "testpassword")
    assert user is not None
    assert user.email == "annotator@example.com"

    assert await AuthService.authenticate_user(db_session, "annotator@example.com", "wrongpassword") is None
    assert await AuthService.authenticate_user(db_session, "nonexistent@example.com", "password") is None


@pytest.mark.asyncio
async def test_login_and_me(client, annotator):
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": "annotator@example.com", "password": "testpassword"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == "annotator@example.com"


@pytest.mark.asyncio
async def test_login_with_wrong_password(client, annotator):
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": "annotator@example.com", "password": "nope"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
