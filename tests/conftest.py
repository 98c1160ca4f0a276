import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlmodel import Session, SQLModel

from scoresheet import create_app
from scoresheet.config import Settings
from scoresheet.db import build_engine, init_db


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(ENV="test", DATABASE_URL="sqlite://", LOG_LEVEL="WARNING")


@pytest.fixture(name="engine")
def engine_fixture(settings: Settings):
    engine = build_engine(settings.DATABASE_URL)
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="app")
def app_fixture(settings: Settings, engine):
    return create_app(settings=settings, engine=engine)


@pytest.fixture(name="client")
def client_fixture(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture(name="auth_client")
async def auth_client_fixture(client: AsyncClient):
    """A client that signed up as alice and carries her session cookie."""
    response = await client.post(
        "/api/auth/signup",
        json={"username": "alice", "password": "secret1", "confirmPassword": "secret1"},
    )
    assert response.status_code == 201
    return client
