"""
Tests for the grant engine.
"""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch

from authserver.core.errors import (
    BadCredentialsError,
    ClientMismatchError,
    GrantDeniedError,
    GrantDisabledError,
    NotFoundError,
    RedirectMismatchError,
)
from authserver.schemas.oauth import GrantType
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.grant_service import GrantContext, GrantService
from authserver.services.stats_service import stats_service
from authserver.services.token_service import token_service
from authserver.services.user_service import user_service

from tests.conftest import REDIRECT_URI, USER_PASSWORD


@pytest.fixture
def grants(memory_stores):
    return GrantService(memory_stores)


async def _issue_code(grants, client, user, scope, code="the-code"):
    await grants.stores.codes.save(
        code,
        client.id,
        REDIRECT_URI,
        user.id,
        datetime.now(timezone.utc) + timedelta(seconds=60),
        scope,
        datetime.now(timezone.utc) - timedelta(minutes=5),
    )
    return code


class TestPasswordGrant:
    """Tests for the password grant"""

    @pytest.mark.asyncio
    async def test_issues_tokens(self, grants, db_session, user, client):
        """Valid credentials give a stored access token and, with offline_access, a refresh token"""
        token_set = await grants.grant_password(
            GrantContext(
                db=db_session,
                client=client,
                username="alice",
                password=USER_PASSWORD,
                scope=["api.read", "offline_access"],
            )
        )

        assert token_set.scope == ["api.read", "offline_access"]
        assert token_set.grant_type == GrantType.PASSWORD
        assert token_set.refresh_token is not None
        assert token_service.verify_token(token_set.access_token).sub == user.id

        record = await grants.stores.access.find(token_set.access_token)
        assert record.user_id == user.id
        assert record.client_id == client.id
        assert await grants.stores.refresh.find(token_set.refresh_token) is not None

    @pytest.mark.asyncio
    async def test_no_refresh_without_offline_access(self, grants, db_session, user, client):
        token_set = await grants.grant_password(
            GrantContext(db=db_session, client=client, username="alice", password=USER_PASSWORD, scope=["api.read"])
        )

        assert token_set.refresh_token is None

    @pytest.mark.asyncio
    async def test_wrong_password(self, grants, db_session, user, client):
        """A wrong password stores nothing and counts a failed login"""
        before = stats_service.get("failedLogin")

        with pytest.raises(BadCredentialsError):
            await grants.grant_password(
                GrantContext(db=db_session, client=client, username="alice", password="wrong-password")
            )

        assert stats_service.get("failedLogin") == before + 1
        assert await grants.stores.access.remove_all() == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, grants, db_session, client):
        with pytest.raises(NotFoundError):
            await grants.grant_password(
                GrantContext(db=db_session, client=client, username="nobody", password=USER_PASSWORD)
            )

    @pytest.mark.asyncio
    async def test_grant_collapses_failures(self, grants, db_session, user, client):
        """Through grant() every validation failure is GrantDenied"""
        with pytest.raises(GrantDeniedError):
            await grants.grant(
                GrantType.PASSWORD,
                GrantContext(db=db_session, client=client, username="alice", password="wrong-password"),
            )

    @pytest.mark.asyncio
    async def test_disabled_grant(self, grants, db_session, user, client):
        with patch("authserver.services.grant_service.settings.disable_password_grant", True):
            with pytest.raises(GrantDisabledError):
                await grants.grant(
                    GrantType.PASSWORD,
                    GrantContext(db=db_session, client=client, username="alice", password=USER_PASSWORD),
                )


class TestAuthorizationCodeGrant:
    """Tests for exchanging authorization codes"""

    @pytest.mark.asyncio
    async def test_exchange(self, grants, db_session, user, client):
        """The token carries the code's scope and auth time"""
        code = await _issue_code(grants, client, user, ["api.read", "offline_access"])
        stored = await grants.stores.codes.find(code)

        token_set = await grants.exchange_code(
            GrantContext(db=db_session, client=client, code=code, redirect_uri=REDIRECT_URI)
        )

        assert token_set.scope == ["api.read", "offline_access"]
        assert token_set.auth_time == stored.auth_time
        assert token_set.refresh_token is not None

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, grants, db_session, user, client):
        code = await _issue_code(grants, client, user, ["api.read"])
        context = GrantContext(db=db_session, client=client, code=code, redirect_uri=REDIRECT_URI)

        await grants.exchange_code(context)

        with pytest.raises(NotFoundError):
            await grants.exchange_code(context)

    @pytest.mark.asyncio
    async def test_failed_exchange_consumes_code(self, grants, db_session, user, client):
        """A wrong redirect_uri still burns the code"""
        code = await _issue_code(grants, client, user, ["api.read"])

        with pytest.raises(RedirectMismatchError):
            await grants.exchange_code(
                GrantContext(db=db_session, client=client, code=code, redirect_uri="https://other.example.com/")
            )

        assert await grants.stores.codes.find(code) is None

    @pytest.mark.asyncio
    async def test_other_client(self, grants, db_session, user, client, machine_client):
        code = await _issue_code(grants, client, user, ["api.read"])

        with pytest.raises(ClientMismatchError):
            await grants.exchange_code(
                GrantContext(db=db_session, client=machine_client, code=code, redirect_uri=REDIRECT_URI)
            )


class TestClientCredentialsGrant:
    """Tests for machine tokens"""

    @pytest.mark.asyncio
    async def test_machine_token(self, grants, db_session, machine_client):
        """No user, no refresh token, subject is the client"""
        before = stats_service.get("clientToken")

        token_set = await grants.grant_client_credentials(GrantContext(db=db_session, client=machine_client))

        assert token_set.refresh_token is None
        assert token_set.scope == ["api.read"]
        assert token_service.verify_token(token_set.access_token).sub == machine_client.id
        assert (await grants.stores.access.find(token_set.access_token)).user_id is None
        assert stats_service.get("clientToken") == before + 1

    @pytest.mark.asyncio
    async def test_offline_access_never_refreshes(self, grants, db_session, client):
        token_set = await grants.grant_client_credentials(
            GrantContext(db=db_session, client=client, scope=["offline_access"])
        )

        assert token_set.scope == ["offline_access"]
        assert token_set.refresh_token is None


class TestRefreshTokenGrant:
    """Tests for the refresh_token grant"""

    @pytest.mark.asyncio
    async def test_refresh(self, grants, db_session, user, client):
        """A new access token with the original scope; requested scope is ignored"""
        original = await grants.grant_password(
            GrantContext(
                db=db_session,
                client=client,
                username="alice",
                password=USER_PASSWORD,
                scope=["api.read", "offline_access"],
            )
        )

        refreshed = await grants.grant_refresh_token(
            GrantContext(db=db_session, client=client, refresh_token=original.refresh_token, scope=["api.write"])
        )

        assert refreshed.scope == original.scope
        assert refreshed.auth_time == original.auth_time
        assert refreshed.refresh_token is None
        assert refreshed.access_token != original.access_token
        assert await grants.stores.access.find(refreshed.access_token) is not None
        assert await grants.stores.refresh.find(original.refresh_token) is not None

    @pytest.mark.asyncio
    async def test_other_client(self, grants, db_session, user, client, machine_client):
        original = await grants.grant_password(
            GrantContext(
                db=db_session, client=client, username="alice", password=USER_PASSWORD, scope=["offline_access"]
            )
        )

        with pytest.raises(ClientMismatchError):
            await grants.grant_refresh_token(
                GrantContext(db=db_session, client=machine_client, refresh_token=original.refresh_token)
            )

    @pytest.mark.asyncio
    async def test_revoked_refresh_token(self, grants, db_session, user, client):
        original = await grants.grant_password(
            GrantContext(
                db=db_session, client=client, username="alice", password=USER_PASSWORD, scope=["offline_access"]
            )
        )
        await grants.stores.refresh.delete(original.refresh_token)

        with pytest.raises(GrantDeniedError):
            await grants.grant(
                GrantType.REFRESH_TOKEN,
                GrantContext(db=db_session, client=client, refresh_token=original.refresh_token),
            )

    @pytest.mark.asyncio
    async def test_deleted_user(self, grants, db_session, user, client):
        """Removing the account stops its refresh tokens minting access tokens"""
        original = await grants.grant_password(
            GrantContext(
                db=db_session, client=client, username="alice", password=USER_PASSWORD, scope=["offline_access"]
            )
        )
        await user_service.delete_user(db_session, user.id)
        context = GrantContext(db=db_session, client=client, refresh_token=original.refresh_token)

        with pytest.raises(NotFoundError):
            await grants.grant_refresh_token(context)
        with pytest.raises(GrantDeniedError):
            await grants.grant(GrantType.REFRESH_TOKEN, context)

        assert await grants.stores.access.find(original.access_token) is not None
        assert len(grants.stores.access._records) == 1

    @pytest.mark.asyncio
    async def test_deleted_client(self, grants, db_session, user, client):
        original = await grants.grant_password(
            GrantContext(
                db=db_session, client=client, username="alice", password=USER_PASSWORD, scope=["offline_access"]
            )
        )
        await oauth_client_service.delete_client(db_session, client.id)

        with pytest.raises(NotFoundError):
            await grants.grant_refresh_token(
                GrantContext(db=db_session, client=client, refresh_token=original.refresh_token)
            )


class TestImplicitGrant:
    """Tests for the implicit grant"""

    @pytest.mark.asyncio
    async def test_access_token_only(self, grants, db_session, user, client):
        auth_time = datetime.now(timezone.utc) - timedelta(minutes=1)

        token_set = await grants.grant_implicit(
            GrantContext(db=db_session, client=client, user=user, scope=["api.write", "offline_access"], auth_time=auth_time)
        )

        assert token_set.refresh_token is None
        assert token_set.grant_type == GrantType.IMPLICIT
        assert token_set.auth_time == auth_time

    @pytest.mark.asyncio
    async def test_missing_user(self, grants, db_session, client):
        with pytest.raises(NotFoundError):
            await grants.grant_implicit(GrantContext(db=db_session, client=client))


def test_enabled_grant_types():
    with patch("authserver.services.grant_service.settings.disable_token_grant", True):
        enabled = GrantService().enabled_grant_types()

    assert GrantType.IMPLICIT not in enabled
    assert GrantType.PASSWORD in enabled
