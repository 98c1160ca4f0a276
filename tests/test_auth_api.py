import pytest
from httpx import AsyncClient, ASGITransport
from sqlmodel import Session, select

from scoresheet.models import User

SIGNUP = {"username": "alice", "password": "secret1", "confirmPassword": "secret1"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_signup_sets_session_cookie(client: AsyncClient, session: Session):
    response = await client.post("/api/auth/signup", json=SIGNUP)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    assert body["user"]["username"] == "alice"
    assert "password_hash" not in body["user"]

    token = response.cookies.get("sessionId")
    assert token
    set_cookie = response.headers["set-cookie"]
    assert "HttpOnly" in set_cookie
    assert "Max-Age=3600" in set_cookie
    assert "samesite=lax" in set_cookie.lower()

    user = session.exec(select(User)).one()
    assert user.current_session_id == token
    assert user.password_hash != "secret1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"username": "alice", "password": "secret1"}, "All fields are required"),
        ({"username": "  ", "password": "secret1", "confirmPassword": "secret1"}, "All fields are required"),
        ({"username": "alice", "password": "secret1", "confirmPassword": "secret2"}, "Passwords do not match"),
        ({"username": "alice", "password": "abc", "confirmPassword": "abc"}, "Password must be at least 6 characters long"),
    ],
)
async def test_signup_validation(client: AsyncClient, payload, message):
    response = await client.post("/api/auth/signup", json=payload)
    assert response.status_code == 400
    assert response.json() == {"message": message}
    assert "set-cookie" not in response.headers


@pytest.mark.asyncio
async def test_signup_duplicate_username(auth_client: AsyncClient):
    response = await auth_client.post("/api/auth/signup", json=SIGNUP)
    assert response.status_code == 400
    assert response.json() == {"message": "Username already exists"}


@pytest.mark.asyncio
async def test_signin_wrong_password(auth_client: AsyncClient, app):
    sessions_before = len(app.state.sessions)
    response = await auth_client.post("/api/auth/signin", json={"username": "alice", "password": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid credentials"}
    assert "set-cookie" not in response.headers
    assert len(app.state.sessions) == sessions_before


@pytest.mark.asyncio
async def test_signin_unknown_user(client: AsyncClient):
    response = await client.post("/api/auth/signin", json={"username": "bob", "password": "secret1"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_signin_requires_both_fields(client: AsyncClient):
    response = await client.post("/api/auth/signin", json={"username": "alice"})
    assert response.status_code == 400
    assert response.json() == {"message": "Username and password are required"}


@pytest.mark.asyncio
async def test_signin_replaces_previous_session(auth_client: AsyncClient, app):
    old_token = auth_client.cookies.get("sessionId")
    response = await auth_client.post("/api/auth/signin", json={"username": "alice", "password": "secret1"})
    assert response.status_code == 200
    assert response.json()["message"] == "Sign in successful"

    new_token = response.cookies.get("sessionId")
    assert new_token and new_token != old_token
    assert app.state.sessions.lookup(old_token) is None
    assert len(app.state.sessions) == 1

    me = await auth_client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "alice"


@pytest.mark.asyncio
async def test_remember_me_cookie_lasts_a_week(auth_client: AsyncClient):
    response = await auth_client.post(
        "/api/auth/signin", json={"username": "alice", "password": "secret1", "rememberMe": True}
    )
    assert response.status_code == 200
    assert "Max-Age=604800" in response.headers["set-cookie"]


@pytest.mark.asyncio
async def test_me_without_cookie(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"message": "No session found"}


@pytest.mark.asyncio
async def test_unknown_session_is_rejected_and_cleared(app):
    client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test", cookies={"sessionId": "bogus"})
    response = await client.get("/api/protected/profile")
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or expired session"}
    assert "sessionId=" in response.headers["set-cookie"]


@pytest.mark.asyncio
async def test_signout(auth_client: AsyncClient, app, session: Session):
    token = auth_client.cookies.get("sessionId")
    response = await auth_client.post("/api/auth/signout")
    assert response.status_code == 200
    assert response.json() == {"message": "Sign out successful"}
    assert app.state.sessions.lookup(token) is None

    user = session.exec(select(User)).one()
    assert user.current_session_id is None

    me = await auth_client.get("/api/auth/me")
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_signout_without_session(client: AsyncClient):
    response = await client.post("/api/auth/signout")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_refresh(auth_client: AsyncClient):
    response = await auth_client.post("/api/auth/refresh")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Session refreshed successfully"
    assert body["expiresAt"]
    assert "Max-Age=3600" in response.headers["set-cookie"]


@pytest.mark.asyncio
async def test_check(client: AsyncClient):
    response = await client.get("/api/auth/check")
    assert response.json() == {"authenticated": False}

    await client.post("/api/auth/signup", json=SIGNUP)
    response = await client.get("/api/auth/check")
    assert response.json()["authenticated"] is True
    assert response.json()["user"]["username"] == "alice"


@pytest.mark.asyncio
async def test_protected_routes(auth_client: AsyncClient):
    profile = await auth_client.get("/api/protected/profile")
    assert profile.status_code == 200
    assert profile.json()["message"] == "This is a protected route"

    dashboard = await auth_client.get("/api/protected/dashboard")
    assert dashboard.status_code == 200
    assert dashboard.json()["message"] == "Welcome to your dashboard"
    assert dashboard.json()["timestamp"]


@pytest.mark.asyncio
async def test_users(auth_client: AsyncClient):
    response = await auth_client.get("/api/user/")
    assert response.status_code == 200
    users = response.json()
    assert [u["username"] for u in users] == ["alice"]
    assert "passwordHash" not in users[0]

    response = await auth_client.get(f"/api/user/{users[0]['id']}")
    assert response.status_code == 200
    assert response.json()["lastLoginAt"]

    response = await auth_client.get("/api/user/999")
    assert response.status_code == 404
    assert response.json() == {"message": "User not found"}
