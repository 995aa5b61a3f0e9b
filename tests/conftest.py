"""Pytest configuration and fixtures."""

import os
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment variables before imports
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["PUBLIC_URL"] = "http://localhost:3000"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_USERNAMES"] = "root, boss@dev.zo"
os.environ["ALLOWED_EMAIL_DOMAINS"] = "dev.zo"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("SMTP_HOST", None)
os.environ.pop("SUPABASE_URL", None)

JWT_SECRET = "test-jwt-secret"


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    from promptminder.database import close_database, get_database
    import promptminder.database as db_module

    # Reset the global connection
    db_module._db_connection = None

    # Create in-memory database
    db = await get_database()

    yield db

    await close_database()
    db_module._db_connection = None


@pytest_asyncio.fixture
async def async_client(test_db):
    """Create an async test client bound to the test database."""
    from promptminder.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(test_db):
    """Factory that inserts a local user and returns it."""
    from promptminder.auth.password import hash_password_async
    from promptminder.auth.users import create_user
    from promptminder.database import transaction

    async def _make_user(
        email: str,
        password: Optional[str] = "secret123",
        username: Optional[str] = None,
        is_admin: bool = False,
    ):
        password_hash = await hash_password_async(password) if password else None
        async with transaction() as db:
            return await create_user(
                db, email=email, password_hash=password_hash, username=username, is_admin=is_admin
            )

    return _make_user


@pytest.fixture
def login_as(async_client):
    """Give the test client a fresh session cookie for a user."""
    from promptminder.auth.session import SESSION_COOKIE_NAME, create_session

    async def _login_as(user_id: str) -> str:
        session = await create_session(user_id)
        async_client.cookies.set(SESSION_COOKIE_NAME, session.token)
        return session.token

    return _login_as


@pytest.fixture
def make_bearer_token():
    """Sign access tokens the way the hosted provider does."""
    import time

    from jose import jwt

    def _make_bearer_token(
        sub: str = "provider-user-1",
        email: str = "bearer@dev.zo",
        secret: str = JWT_SECRET,
        expires_in: int = 3600,
        app_metadata: Optional[dict] = None,
        **metadata,
    ) -> str:
        payload = {
            "sub": sub,
            "email": email,
            "aud": "authenticated",
            "exp": int(time.time()) + expires_in,
            "user_metadata": metadata,
            "app_metadata": app_metadata or {},
        }
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make_bearer_token
