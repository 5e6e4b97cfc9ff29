"""
Pytest configuration and fixtures.
"""
import os
import tempfile
from pathlib import Path

_TEST_DIR = Path(tempfile.mkdtemp(prefix="authserver-tests-"))

# Settings are read at import time, so the environment is prepared first
os.environ.setdefault("AUTH_SERVER__ENVIRONMENT", "testing")
os.environ.setdefault("AUTH_SERVER__DB_URL", f"sqlite:///{_TEST_DIR / 'authserver.db'}")
os.environ.setdefault("AUTH_SERVER__PRIVATE_KEY_PATH", str(_TEST_DIR / "keys" / "private_key.pem"))
os.environ.setdefault("AUTH_SERVER__PUBLIC_KEY_PATH", str(_TEST_DIR / "keys" / "public_key.pem"))
os.environ.setdefault("AUTH_SERVER__TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("AUTH_SERVER__BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_SERVER__ENABLE_BRUTE_FORCE_PROTECTION", "false")
os.environ.setdefault("AUTH_SERVER__ADMIN_PASSWORD", "admin-password-for-tests")
os.environ.setdefault("AUTH_SERVER__SESSION_SECRET", "test-session-secret")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from authserver.core.security import rsa_key_manager
from authserver.models import Base
from authserver.schemas.oauth import OAuthClientCreate
from authserver.schemas.user import UserCreate
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.token_store import TokenStores
from authserver.services.user_service import user_service

USER_PASSWORD = "correct-horse-battery"
CLIENT_SECRET = "client-secret-value"
REDIRECT_URI = "https://app.example.com/callback"


@pytest.fixture(scope="session", autouse=True)
def signing_keys():
    """One RSA key pair for the whole run, written where load_keys() finds it"""
    rsa_key_manager.generate_keys(persist=True)
    yield rsa_key_manager


@pytest_asyncio.fixture
async def db_session():
    """
    In-memory database for a single test.

    Tables are created fresh for every test.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture
async def sql_session_maker(tmp_path):
    """File-backed database so concurrent sessions get their own connections"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stores.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def memory_stores():
    """Fresh in-memory access, refresh and code stores"""
    return TokenStores.create("memory")


@pytest_asyncio.fixture
async def user(db_session):
    """Active user allowed api.read, api.write and offline_access"""
    return await user_service.create_user(
        db_session,
        UserCreate(
            username="alice",
            password=USER_PASSWORD,
            name="Alice",
            role=["api.read", "api.write", "offline_access"],
        ),
    )


@pytest_asyncio.fixture
async def client(db_session):
    """Untrusted client that may request user tokens"""
    return await oauth_client_service.create_client(
        db_session,
        OAuthClientCreate(
            client_id="test-app",
            client_secret=CLIENT_SECRET,
            name="Test App",
            allowed_scope=["auth.token", "auth.info", "api.read", "api.write", "offline_access"],
            default_scope=["api.read"],
            allowed_redirect_uri=[REDIRECT_URI],
        ),
    )


@pytest_asyncio.fixture
async def machine_client(db_session):
    """Client limited to the client_credentials grant"""
    return await oauth_client_service.create_client(
        db_session,
        OAuthClientCreate(
            client_id="machine",
            client_secret=CLIENT_SECRET,
            name="Machine",
            allowed_scope=["auth.client", "api.read"],
            default_scope=["api.read"],
        ),
    )
