"""
Tests for the token and authorization code stores (memory and database backends).
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from authserver.core.errors import MalformedTokenError
from authserver.models import AccessToken, AuthorizationCode
from authserver.schemas.oauth import GrantType
from authserver.services.token_service import token_service
from authserver.services.token_store import TokenStores


def _future(seconds: int = 3600) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def _past(seconds: int = 3600) -> datetime:
    return datetime.now(timezone.utc) - timedelta(seconds=seconds)


async def _save_token(store, expiration_date=None, user_id="user-1"):
    token = token_service.create_token(user_id or "client-1", 3600)
    await store.save(
        token,
        expiration_date or _future(),
        user_id,
        "client-1",
        ["api.read"],
        GrantType.PASSWORD,
        datetime.now(timezone.utc),
    )
    return token


async def _save_code(store, code="code-1", expiration_date=None):
    return await store.save(
        code,
        "client-1",
        "https://app.example.com/callback",
        "user-1",
        expiration_date or _future(60),
        ["api.read"],
        datetime.now(timezone.utc),
    )


@pytest.fixture(params=["memory", "database"])
def stores(request, sql_session_maker):
    """Run each contract test against both backends"""
    return TokenStores.create(request.param, sql_session_maker)


class TestTokenStoreContract:
    """Behaviour shared by every token store backend"""

    @pytest.mark.asyncio
    async def test_save_then_find(self, stores):
        """A saved token is found by its raw string"""
        token = await _save_token(stores.access)

        record = await stores.access.find(token)

        assert record is not None
        assert record.id == token_service.decode_token(token).jti
        assert record.user_id == "user-1"
        assert record.client_id == "client-1"
        assert record.scope == ["api.read"]
        assert record.grant_type == GrantType.PASSWORD
        assert record.expiration_date.tzinfo is not None

    @pytest.mark.asyncio
    async def test_client_token_has_no_user(self, stores):
        """Machine tokens are stored with a null user"""
        token = await _save_token(stores.access, user_id=None)

        assert (await stores.access.find(token)).user_id is None

    @pytest.mark.asyncio
    async def test_find_unknown_and_malformed(self, stores):
        """Unknown and malformed tokens resolve to None"""
        assert await stores.access.find(token_service.create_token("user-1", 60)) is None
        assert await stores.access.find("garbage") is None

    @pytest.mark.asyncio
    async def test_save_malformed_raises(self, stores):
        """A token without a readable jti cannot be saved"""
        with pytest.raises(MalformedTokenError):
            await stores.access.save(
                "garbage", _future(), "user-1", "client-1", [], GrantType.PASSWORD, datetime.now(timezone.utc)
            )

    @pytest.mark.asyncio
    async def test_delete_returns_record_once(self, stores):
        """Delete returns the record, then None"""
        token = await _save_token(stores.access)

        first = await stores.access.delete(token)
        second = await stores.access.delete(token)

        assert first is not None
        assert second is None
        assert await stores.access.find(token) is None

    @pytest.mark.asyncio
    async def test_delete_malformed_returns_none(self, stores):
        """Deleting garbage is not an error"""
        assert await stores.access.delete("garbage") is None

    @pytest.mark.asyncio
    async def test_access_and_refresh_are_separate(self, stores):
        """A token saved as access is not visible in the refresh store"""
        token = await _save_token(stores.access)

        assert await stores.refresh.find(token) is None

    @pytest.mark.asyncio
    async def test_remove_expired(self, stores):
        """Only records past their expiration date are removed"""
        live = [await _save_token(stores.access) for _ in range(3)]
        for _ in range(2):
            await _save_token(stores.access, expiration_date=_past())

        removed = await stores.access.remove_expired()

        assert len(removed) == 2
        for token in live:
            assert await stores.access.find(token) is not None

    @pytest.mark.asyncio
    async def test_remove_all(self, stores):
        """remove_all empties the store"""
        tokens = [await _save_token(stores.refresh) for _ in range(3)]

        removed = await stores.refresh.remove_all()

        assert len(removed) == 3
        for token in tokens:
            assert await stores.refresh.find(token) is None

    @pytest.mark.asyncio
    async def test_concurrent_delete_single_winner(self, stores):
        """Of many concurrent deletes of one token, exactly one gets the record"""
        token = await _save_token(stores.access)

        results = await asyncio.gather(*(stores.access.delete(token) for _ in range(5)))

        assert sum(result is not None for result in results) == 1


class TestCodeStoreContract:
    """Behaviour shared by every authorization code store backend"""

    @pytest.mark.asyncio
    async def test_save_find_delete(self, stores):
        """A code is found until it is consumed"""
        await _save_code(stores.codes)

        found = await stores.codes.find("code-1")
        consumed = await stores.codes.delete("code-1")

        assert found.redirect_uri == "https://app.example.com/callback"
        assert consumed.code == "code-1"
        assert await stores.codes.find("code-1") is None
        assert await stores.codes.delete("code-1") is None

    @pytest.mark.asyncio
    async def test_concurrent_consume_single_winner(self, stores):
        """Two redemptions of one code: only one receives the record"""
        await _save_code(stores.codes)

        first, second = await asyncio.gather(stores.codes.delete("code-1"), stores.codes.delete("code-1"))

        assert (first is None) != (second is None)

    @pytest.mark.asyncio
    async def test_remove_expired(self, stores):
        """Expired codes are swept, live ones stay"""
        await _save_code(stores.codes, "live")
        await _save_code(stores.codes, "stale", expiration_date=_past())

        removed = await stores.codes.remove_expired()

        assert [record.code for record in removed] == ["stale"]
        assert await stores.codes.find("live") is not None


class TestDatabaseStore:
    """Database backend specifics"""

    @pytest.mark.asyncio
    async def test_raw_token_never_persisted(self, sql_session_maker):
        """Only the jti is written to the accesstokens table"""
        stores = TokenStores.create("database", sql_session_maker)
        token = await _save_token(stores.access)

        async with sql_session_maker() as session:
            rows = (await session.execute(select(AccessToken))).scalars().all()

        assert len(rows) == 1
        assert rows[0].id == token_service.decode_token(token).jti
        assert token not in (rows[0].id, str(rows[0].scope))

    @pytest.mark.asyncio
    async def test_code_row_columns(self, sql_session_maker):
        """Codes land in the authorizationcodes table"""
        stores = TokenStores.create("database", sql_session_maker)
        await _save_code(stores.codes)

        async with sql_session_maker() as session:
            row = await session.get(AuthorizationCode, "code-1")

        assert row.client_id == "client-1"
        assert row.user_id == "user-1"


def test_unknown_backend():
    """Only memory and database backends exist"""
    with pytest.raises(ValueError):
        TokenStores.create("cassandra")
