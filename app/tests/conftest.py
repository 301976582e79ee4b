"""
Shared pytest fixtures.

The environment is pinned before any app module is imported: settings are
read once at import time. SQLite (aiosqlite) stands in for PostgreSQL.
"""

import asyncio
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-access-secret-0123456789abcdefghijkl"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789abcdefghij"
os.environ["BCRYPT_ROUNDS"] = "4"

from typing import AsyncGenerator, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete, update  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402

from app.core.database import Database  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models.user import User  # noqa: E402


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def database(database_url) -> Database:
    """Database handle handed to the application; the lifespan initialises and disposes it."""
    return Database(database_url)


@pytest.fixture
def client(database) -> Iterator[TestClient]:
    app = create_app(database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def session(database_url) -> AsyncGenerator[AsyncSession, None]:
    """Session on a freshly created schema, for service and repository tests."""
    db = Database(database_url)
    await db.init()
    async with db.session() as s:
        yield s
    await db.dispose()


@pytest.fixture
def user_data():
    """Test user data for registration."""
    return {
        "email": "punter@example.com",
        "username": "punter",
        "password": "TestPass123!",
    }


def _run_statement(database_url: str, statement) -> None:
    async def run():
        engine = create_async_engine(database_url)
        try:
            async with engine.begin() as conn:
                await conn.execute(statement)
        finally:
            await engine.dispose()

    asyncio.run(run())


@pytest.fixture
def deactivate_user(database_url):
    """Flip is_active off for an email, outside the application's event loop."""
    def _deactivate(email: str) -> None:
        _run_statement(database_url, update(User).where(User.email == email).values(is_active=False))
    return _deactivate


@pytest.fixture
def delete_user(database_url):
    def _delete(email: str) -> None:
        _run_statement(database_url, delete(User).where(User.email == email))
    return _delete
