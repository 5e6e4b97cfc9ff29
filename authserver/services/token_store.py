"""
Token and authorization code stores.

Three stores share one contract: access tokens, refresh tokens and
authorization codes. Token records are keyed by the jti claim read from the
signed token; the raw token string is never written anywhere. Codes are
keyed by the code itself.

Two interchangeable backends exist:
- Memory: a dict guarded by an asyncio.Lock, so find-and-delete happens in a
  single critical section.
- Database: one SQLAlchemy query per operation. Deletes use
  DELETE ... RETURNING so that two concurrent consumers of the same key
  cannot both receive the row.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authserver.core.config import settings
from authserver.core.errors import MalformedTokenError
from authserver.models.database import async_session_maker
from authserver.models.token import AccessToken, AuthorizationCode, RefreshToken
from authserver.schemas.oauth import GrantType
from authserver.schemas.token import AuthorizationCodeRecord, TokenRecord
from authserver.services.token_service import token_service


def _token_id(token: str) -> str | None:
    """Derive the store key from a raw token, or None if it is malformed"""
    try:
        return token_service.decode_token(token).jti
    except MalformedTokenError:
        return None


class TokenStore(ABC):
    """Persistence contract for access and refresh token metadata"""

    @abstractmethod
    async def find(self, token: str) -> TokenRecord | None:
        """
        Find metadata for a raw signed token

        Args:
            token: Raw signed token

        Returns:
            Stored record, or None if unknown or malformed
        """

    @abstractmethod
    async def save(
        self,
        token: str,
        expiration_date: datetime,
        user_id: str | None,
        client_id: str,
        scope: list[str],
        grant_type: GrantType,
        auth_time: datetime,
    ) -> TokenRecord:
        """
        Persist metadata for a newly minted token

        Raises:
            MalformedTokenError: If no jti can be read from the token
        """

    @abstractmethod
    async def delete(self, token: str) -> TokenRecord | None:
        """
        Remove and return the record for a raw signed token

        Returns:
            The removed record, or None if nothing was removed
        """

    @abstractmethod
    async def remove_expired(self) -> list[TokenRecord]:
        """Remove and return every record whose expiration date has passed"""

    @abstractmethod
    async def remove_all(self) -> list[TokenRecord]:
        """Remove and return every record"""

    @staticmethod
    def _require_id(token: str) -> str:
        token_id = _token_id(token)
        if token_id is None:
            raise MalformedTokenError("Cannot save a token without a jti claim")
        return token_id


class CodeStore(ABC):
    """Persistence contract for authorization codes"""

    @abstractmethod
    async def find(self, code: str) -> AuthorizationCodeRecord | None:
        """Find an authorization code"""

    @abstractmethod
    async def save(
        self,
        code: str,
        client_id: str,
        redirect_uri: str,
        user_id: str,
        expiration_date: datetime,
        scope: list[str],
        auth_time: datetime,
    ) -> AuthorizationCodeRecord:
        """Persist a newly issued authorization code"""

    @abstractmethod
    async def delete(self, code: str) -> AuthorizationCodeRecord | None:
        """
        Consume an authorization code

        Only one caller can ever receive the record for a given code; every
        other caller gets None.
        """

    @abstractmethod
    async def remove_expired(self) -> list[AuthorizationCodeRecord]:
        """Remove and return every expired code"""

    @abstractmethod
    async def remove_all(self) -> list[AuthorizationCodeRecord]:
        """Remove and return every code"""


# ==================== Memory backend ====================


class MemoryTokenStore(TokenStore):
    """In-process token store"""

    def __init__(self, name: str):
        self.name = name
        self._records: dict[str, TokenRecord] = {}
        self._lock = asyncio.Lock()

    async def find(self, token: str) -> TokenRecord | None:
        token_id = _token_id(token)
        if token_id is None:
            return None
        async with self._lock:
            return self._records.get(token_id)

    async def save(self, token, expiration_date, user_id, client_id, scope, grant_type, auth_time):
        record = TokenRecord(
            id=self._require_id(token),
            user_id=user_id,
            client_id=client_id,
            expiration_date=expiration_date,
            scope=list(scope),
            grant_type=grant_type,
            auth_time=auth_time,
        )
        async with self._lock:
            self._records[record.id] = record
        return record

    async def delete(self, token: str) -> TokenRecord | None:
        token_id = _token_id(token)
        if token_id is None:
            return None
        async with self._lock:
            return self._records.pop(token_id, None)

    async def remove_expired(self) -> list[TokenRecord]:
        now = datetime.now(timezone.utc)
        async with self._lock:
            expired = [key for key, record in self._records.items() if record.expiration_date < now]
            return [self._records.pop(key) for key in expired]

    async def remove_all(self) -> list[TokenRecord]:
        async with self._lock:
            removed = list(self._records.values())
            self._records.clear()
            return removed


class MemoryCodeStore(CodeStore):
    """In-process authorization code store"""

    def __init__(self):
        self._records: dict[str, AuthorizationCodeRecord] = {}
        self._lock = asyncio.Lock()

    async def find(self, code: str) -> AuthorizationCodeRecord | None:
        async with self._lock:
            return self._records.get(code)

    async def save(self, code, client_id, redirect_uri, user_id, expiration_date, scope, auth_time):
        record = AuthorizationCodeRecord(
            code=code,
            client_id=client_id,
            redirect_uri=redirect_uri,
            user_id=user_id,
            expiration_date=expiration_date,
            scope=list(scope),
            auth_time=auth_time,
        )
        async with self._lock:
            self._records[code] = record
        return record

    async def delete(self, code: str) -> AuthorizationCodeRecord | None:
        async with self._lock:
            return self._records.pop(code, None)

    async def remove_expired(self) -> list[AuthorizationCodeRecord]:
        now = datetime.now(timezone.utc)
        async with self._lock:
            expired = [key for key, record in self._records.items() if record.expiration_date < now]
            return [self._records.pop(key) for key in expired]

    async def remove_all(self) -> list[AuthorizationCodeRecord]:
        async with self._lock:
            removed = list(self._records.values())
            self._records.clear()
            return removed


# ==================== Database backend ====================


class SQLTokenStore(TokenStore):
    """Token store backed by the accesstokens / refreshtokens tables"""

    def __init__(
        self,
        model: type[AccessToken] | type[RefreshToken],
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
    ):
        self.model = model
        self.name = model.__tablename__
        self._session_maker = session_maker

    async def find(self, token: str) -> TokenRecord | None:
        token_id = _token_id(token)
        if token_id is None:
            return None
        async with self._session_maker() as session:
            row = await session.get(self.model, token_id)
            return TokenRecord.model_validate(row) if row else None

    async def save(self, token, expiration_date, user_id, client_id, scope, grant_type, auth_time):
        row = self.model(
            id=self._require_id(token),
            user_id=user_id,
            client_id=client_id,
            expiration_date=expiration_date,
            scope=list(scope),
            grant_type=GrantType(grant_type).value,
            auth_time=auth_time,
        )
        async with self._session_maker() as session, session.begin():
            session.add(row)
        return TokenRecord.model_validate(row)

    async def delete(self, token: str) -> TokenRecord | None:
        token_id = _token_id(token)
        if token_id is None:
            return None
        rows = await self._delete_returning(self.model.id == token_id)
        return rows[0] if rows else None

    async def remove_expired(self) -> list[TokenRecord]:
        return await self._delete_returning(self.model.expiration_date < datetime.now(timezone.utc))

    async def remove_all(self) -> list[TokenRecord]:
        return await self._delete_returning()

    async def _delete_returning(self, *criteria) -> list[TokenRecord]:
        stmt = (
            delete(self.model)
            .where(*criteria)
            .returning(self.model)
            .execution_options(synchronize_session=False)
        )
        async with self._session_maker() as session, session.begin():
            result = await session.execute(stmt)
            return [TokenRecord.model_validate(row) for row in result.scalars().all()]


class SQLCodeStore(CodeStore):
    """Authorization code store backed by the authorizationcodes table"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession] = async_session_maker):
        self._session_maker = session_maker

    async def find(self, code: str) -> AuthorizationCodeRecord | None:
        async with self._session_maker() as session:
            result = await session.execute(
                select(AuthorizationCode).where(AuthorizationCode.code == code)
            )
            row = result.scalar_one_or_none()
            return AuthorizationCodeRecord.model_validate(row) if row else None

    async def save(self, code, client_id, redirect_uri, user_id, expiration_date, scope, auth_time):
        row = AuthorizationCode(
            code=code,
            client_id=client_id,
            redirect_uri=redirect_uri,
            user_id=user_id,
            expiration_date=expiration_date,
            scope=list(scope),
            auth_time=auth_time,
        )
        async with self._session_maker() as session, session.begin():
            session.add(row)
        return AuthorizationCodeRecord.model_validate(row)

    async def delete(self, code: str) -> AuthorizationCodeRecord | None:
        rows = await self._delete_returning(AuthorizationCode.code == code)
        return rows[0] if rows else None

    async def remove_expired(self) -> list[AuthorizationCodeRecord]:
        return await self._delete_returning(
            AuthorizationCode.expiration_date < datetime.now(timezone.utc)
        )

    async def remove_all(self) -> list[AuthorizationCodeRecord]:
        return await self._delete_returning()

    async def _delete_returning(self, *criteria) -> list[AuthorizationCodeRecord]:
        stmt = (
            delete(AuthorizationCode)
            .where(*criteria)
            .returning(AuthorizationCode)
            .execution_options(synchronize_session=False)
        )
        async with self._session_maker() as session, session.begin():
            result = await session.execute(stmt)
            return [AuthorizationCodeRecord.model_validate(row) for row in result.scalars().all()]


# ==================== Store registry ====================


class TokenStores:
    """The three stores used by the grant engine, introspection and the sweeper"""

    def __init__(self, access: TokenStore, refresh: TokenStore, codes: CodeStore):
        self.access = access
        self.refresh = refresh
        self.codes = codes

    @classmethod
    def create(
        cls,
        backend: str,
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
    ) -> "TokenStores":
        """
        Build a store set for the given backend

        Args:
            backend: "memory" or "database"
            session_maker: Session factory for the database backend

        Raises:
            ValueError: If the backend is unknown
        """
        if backend == "memory":
            return cls(MemoryTokenStore("accesstokens"), MemoryTokenStore("refreshtokens"), MemoryCodeStore())
        if backend == "database":
            return cls(
                SQLTokenStore(AccessToken, session_maker),
                SQLTokenStore(RefreshToken, session_maker),
                SQLCodeStore(session_maker),
            )
        raise ValueError(f"Unknown token store backend: {backend}")


# Global instance
token_stores = TokenStores.create(settings.token_store_backend)
