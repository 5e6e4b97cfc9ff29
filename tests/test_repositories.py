"""
Tests for the user and client repositories, audit trail and seeding.
"""
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from unittest.mock import patch

from authserver.core.seed import ADMIN_ROLE, DEFAULT_CLIENTS, seed_default_data
from authserver.models import AuditLog
from authserver.schemas.oauth import OAuthClientCreate
from authserver.schemas.user import UserCreate
from authserver.services.audit_service import audit_service
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.user_service import user_service
from authserver.utils.crypto import verify_password
from scripts.init_db import delete_accounts

from tests.conftest import CLIENT_SECRET, USER_PASSWORD


class TestUserService:
    """Tests for UserService"""

    @pytest.mark.asyncio
    async def test_password_is_hashed(self, db_session, user):
        assert user.password_hash != USER_PASSWORD
        assert verify_password(USER_PASSWORD, user.password_hash)

    @pytest.mark.asyncio
    async def test_duplicate_username(self, db_session, user):
        with pytest.raises(ValueError):
            await user_service.create_user(db_session, UserCreate(username="alice", password=USER_PASSWORD))

    @pytest.mark.asyncio
    async def test_soft_delete_hides_user(self, db_session, user):
        assert await user_service.delete_user(db_session, user.id) is True

        assert await user_service.get_by_id(db_session, user.id) is None
        assert await user_service.get_by_username(db_session, "alice") is None
        assert await user_service.delete_user(db_session, user.id) is False

    @pytest.mark.asyncio
    async def test_username_reusable_after_delete(self, db_session, user):
        await user_service.delete_user(db_session, user.id)

        replacement = await user_service.create_user(
            db_session, UserCreate(username="alice", password=USER_PASSWORD)
        )

        assert replacement.id != user.id

    @pytest.mark.asyncio
    async def test_update_login_time(self, db_session, user):
        assert user.last_login is None

        await user_service.update_login_time(db_session, user)

        assert (await user_service.get_by_id(db_session, user.id)).last_login is not None


class TestOAuthClientService:
    """Tests for OAuthClientService"""

    @pytest.mark.asyncio
    async def test_secret_is_hashed(self, db_session, client):
        assert client.client_secret_hash != CLIENT_SECRET
        assert verify_password(CLIENT_SECRET, client.client_secret_hash)

    @pytest.mark.asyncio
    async def test_duplicate_client_id(self, db_session, client):
        with pytest.raises(ValueError):
            await oauth_client_service.create_client(
                db_session, OAuthClientCreate(client_id="test-app", client_secret=CLIENT_SECRET, name="Again")
            )

    @pytest.mark.asyncio
    async def test_soft_delete_hides_client(self, db_session, client, machine_client):
        assert await oauth_client_service.delete_client(db_session, machine_client.id) is True

        assert await oauth_client_service.get_by_client_id(db_session, "machine") is None
        assert await oauth_client_service.get_by_id(db_session, machine_client.id) is None
        assert (await oauth_client_service.get_by_client_id(db_session, "test-app")).id == client.id
        assert await oauth_client_service.delete_client(db_session, machine_client.id) is False


class TestAuditService:
    """Tests for AuditService"""

    @pytest.mark.asyncio
    async def test_grant_denied_row(self, db_session):
        await audit_service.log_grant_denied(
            db_session, grant_type="password", client_id="test-app", username="alice", ip_address="10.0.0.1"
        )

        row = (await db_session.execute(select(AuditLog))).scalar_one()
        assert row.event_type == "login_failed"
        assert row.success is False
        assert row.event_data == {"grant_type": "password", "username": "alice"}
        assert row.ip_address == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_token_issued_row(self, db_session):
        await audit_service.log_token_issued(
            db_session, grant_type="client_credentials", client_id="machine", scope=["api.read"]
        )

        row = (await db_session.execute(select(AuditLog))).scalar_one()
        assert row.event_type == "token_issued"
        assert row.success is True
        assert row.event_data["scope"] == ["api.read"]


class TestSeed:
    """Tests for seed_default_data"""

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        session_maker = async_sessionmaker(db_session.bind, class_=AsyncSession, expire_on_commit=False)

        with patch("authserver.core.seed.async_session_maker", session_maker):
            await seed_default_data()
            await seed_default_data()

        admin = await user_service.get_by_username(db_session, "admin")
        assert admin.role == ADMIN_ROLE
        for client_data in DEFAULT_CLIENTS:
            assert await oauth_client_service.get_by_client_id(db_session, client_data["client_id"]) is not None


class TestDeleteAccounts:
    """Tests for the init_db account offboarding"""

    @pytest.mark.asyncio
    async def test_deletes_by_name(self, db_session, user, client):
        session_maker = async_sessionmaker(db_session.bind, class_=AsyncSession, expire_on_commit=False)

        with patch("scripts.init_db.async_session_maker", session_maker):
            missing = await delete_accounts(["alice", "nobody"], ["test-app"])

        assert missing == ["nobody"]
        assert await user_service.get_by_username(db_session, "alice") is None
        assert await oauth_client_service.get_by_client_id(db_session, "test-app") is None
