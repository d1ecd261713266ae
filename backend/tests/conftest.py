"""Test fixtures for the Stable Ride backend."""
from __future__ import annotations

import os
from collections.abc import AsyncIterator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from app.api.deps import get_distance_oracle
from app.core.config import get_settings
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import dispose_engine, get_sessionmaker
from app.integrations.maps_client import DistanceResult, Location
from app.main import app
from app.models import User, UserRole, UserStatus

# 16093.44 m is exactly ten miles
TEN_MILES = DistanceResult(meters=Decimal("16093.44"), seconds=1200)

PASSWORDS = {
    "admin": "Adm1nPass!",
    "dispatcher": "D1spatch!",
    "customer": "Cust0mer!",
    "other": "0therPass!",
}


class FixedDistanceOracle:
    """Returns the same distance for every leg and counts lookups."""

    def __init__(self, result: DistanceResult = TEN_MILES) -> None:
        self.result = result
        self.calls: list[tuple[Location, Location]] = []

    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        self.calls.append((origin, destination))
        return self.result


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest_asyncio.fixture()
async def db_session(reset_database: None, db_url: str) -> AsyncIterator[AsyncSession]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        yield session


@pytest.fixture()
def oracle() -> FixedDistanceOracle:
    return FixedDistanceOracle()


async def _seed_users(db_url: str) -> dict[str, User]:
    sessionmaker = get_sessionmaker(db_url)
    users: dict[str, User] = {}
    async with sessionmaker() as session:
        for key, role, first_name in (
            ("admin", UserRole.ADMIN, "Avery"),
            ("dispatcher", UserRole.DISPATCHER, "Dana"),
            ("customer", UserRole.CUSTOMER, "Casey"),
            ("other", UserRole.CUSTOMER, "Oakley"),
        ):
            user = User(
                email=f"{key}@example.com",
                hashed_password=get_password_hash(PASSWORDS[key]),
                first_name=first_name,
                last_name="Tester",
                role=role,
                status=UserStatus.ACTIVE,
            )
            session.add(user)
            users[key] = user
        await session.commit()
    return users


@pytest_asyncio.fixture()
async def app_context(
    reset_database: None, db_url: str, oracle: FixedDistanceOracle
) -> AsyncIterator[dict[str, object]]:
    """Yield an async client, seeded users and the distance oracle in use."""
    users = await _seed_users(db_url)
    app.dependency_overrides[get_distance_oracle] = lambda: oracle

    context: dict[str, object] = {
        "oracle": oracle,
        "db_url": db_url,
        **{f"{key}_id": user.id for key, user in users.items()},
        **{f"{key}_email": user.email for key, user in users.items()},
        **{f"{key}_password": PASSWORDS[key] for key in users},
    }

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            context["client"] = client
            yield context
    finally:
        app.dependency_overrides.pop(get_distance_oracle, None)


async def authenticate(client: AsyncClient, email: str, password: str) -> dict[str, str]:
    """Log in and return an Authorization header."""
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture()
async def headers(app_context: dict[str, object]) -> dict[str, dict[str, str]]:
    """Authorization headers keyed by seeded user."""
    client = app_context["client"]
    assert isinstance(client, AsyncClient)
    return {
        key: await authenticate(client, f"{key}@example.com", password)
        for key, password in PASSWORDS.items()
    }
