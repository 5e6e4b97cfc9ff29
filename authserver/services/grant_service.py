"""
Grant engine.

Each OAuth2 grant type is a handler with the same signature,
`handler(context) -> TokenSet`, registered under its GrantType. Handlers
raise the specific errors from core.errors so they can be tested on their
own; `grant()` is the single entry point used by the protocol layer and
turns every authorization failure into GrantDeniedError. Database and store
errors are not authorization failures and propagate unchanged.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger, settings
from authserver.core.errors import (
    AuthServerError,
    BadCredentialsError,
    GrantDeniedError,
    GrantDisabledError,
    LoginDisabledError,
    NotFoundError,
)
from authserver.models.oauth_client import OAuthClient
from authserver.models.user import User
from authserver.schemas.oauth import GrantType
from authserver.schemas.token import TokenSet
from authserver.services.credential_validator import credential_validator
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.scope_service import scope_service
from authserver.services.stats_service import stats_service
from authserver.services.token_service import token_service
from authserver.services.token_store import TokenStores, token_stores
from authserver.services.user_service import user_service


@dataclass
class GrantContext:
    """Inputs of a single grant request; the client is already authenticated"""

    db: AsyncSession
    client: OAuthClient
    user: User | None = None
    username: str | None = None
    password: str | None = None
    code: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None
    scope: list[str] = field(default_factory=list)
    auth_time: datetime | None = None


GrantHandler = Callable[[GrantContext], Awaitable[TokenSet]]


class GrantService:
    """Issues tokens for the OAuth2 grant types"""

    def __init__(self, stores: TokenStores | None = None):
        self.stores = stores or token_stores
        self._handlers: dict[GrantType, GrantHandler] = {
            GrantType.AUTHORIZATION_CODE: self.exchange_code,
            GrantType.IMPLICIT: self.grant_implicit,
            GrantType.PASSWORD: self.grant_password,
            GrantType.CLIENT_CREDENTIALS: self.grant_client_credentials,
            GrantType.REFRESH_TOKEN: self.grant_refresh_token,
        }

    def enabled_grant_types(self) -> set[GrantType]:
        """Grant types not switched off in settings"""
        disabled = {
            GrantType.AUTHORIZATION_CODE: settings.disable_code_grant,
            GrantType.IMPLICIT: settings.disable_token_grant,
            GrantType.PASSWORD: settings.disable_password_grant,
            GrantType.CLIENT_CREDENTIALS: settings.disable_client_grant,
            GrantType.REFRESH_TOKEN: settings.disable_refresh_token_grant,
        }
        return {grant_type for grant_type, off in disabled.items() if not off}

    async def grant(self, grant_type: GrantType, context: GrantContext) -> TokenSet:
        """
        Run the handler for a grant type

        Args:
            grant_type: Requested grant type
            context: Grant inputs

        Returns:
            Issued tokens

        Raises:
            GrantDisabledError: If the grant type is disabled
            GrantDeniedError: If any validation step failed
        """
        if grant_type not in self.enabled_grant_types():
            raise GrantDisabledError(f"Grant type '{grant_type.value}' is disabled")

        handler = self._handlers[grant_type]
        try:
            return await handler(context)
        except AuthServerError as e:
            logger.warning(
                f"[TRACE] Grant denied: {grant_type.value} ({e.error_code})",
                extra={
                    "trace_point": "grant_denied",
                    "grant_type": grant_type.value,
                    "client_id": context.client.client_id,
                    "error": e.to_dict(),
                },
            )
            raise GrantDeniedError("Grant denied") from e

    # ==================== Handlers ====================

    async def exchange_code(self, context: GrantContext) -> TokenSet:
        """
        Exchange an authorization code for tokens

        The code is deleted before it is validated, so a failed exchange
        still consumes it and no code can ever be redeemed twice.
        """
        record = await self.stores.codes.delete(context.code or "")
        record = credential_validator.validate_authorization_code(
            record,
            context.client,
            context.redirect_uri or "",
        )

        try:
            token_set = await self._issue(
                client=context.client,
                user_id=record.user_id,
                scope=record.scope,
                grant_type=GrantType.AUTHORIZATION_CODE,
                auth_time=record.auth_time,
                with_refresh=scope_service.has_offline_access(record.scope),
            )
        except Exception:
            logger.error(
                "Authorization code consumed but token issuance failed",
                extra={"client_id": context.client.client_id, "user_id": record.user_id},
                exc_info=True,
            )
            raise

        stats_service.increment("userToken")
        return token_set

    async def grant_implicit(self, context: GrantContext) -> TokenSet:
        """Issue an access token directly to a user-agent; never a refresh token"""
        user = credential_validator.user_exists(context.user)
        scope = scope_service.intersect(
            context.scope,
            context.client.allowed_scope,
            context.client.default_scope,
            role=user.role,
            has_user=True,
        )

        token_set = await self._issue(
            client=context.client,
            user_id=user.id,
            scope=scope,
            grant_type=GrantType.IMPLICIT,
            auth_time=context.auth_time or datetime.now(timezone.utc),
            with_refresh=False,
        )
        stats_service.increment("userToken")
        return token_set

    async def grant_password(self, context: GrantContext) -> TokenSet:
        """Issue tokens for a username and password"""
        user = None
        if context.username:
            user = await user_service.get_by_username(context.db, context.username)

        try:
            user = credential_validator.validate_user(user, context.password or "")
        except (NotFoundError, BadCredentialsError, LoginDisabledError):
            stats_service.increment("failedLogin")
            raise

        scope = scope_service.intersect(
            context.scope,
            context.client.allowed_scope,
            context.client.default_scope,
            role=user.role,
            has_user=True,
        )

        token_set = await self._issue(
            client=context.client,
            user_id=user.id,
            scope=scope,
            grant_type=GrantType.PASSWORD,
            auth_time=datetime.now(timezone.utc),
            with_refresh=scope_service.has_offline_access(scope),
        )
        stats_service.increment("userToken")
        return token_set

    async def grant_client_credentials(self, context: GrantContext) -> TokenSet:
        """Issue a machine token with no user; never a refresh token"""
        scope = scope_service.intersect(
            context.scope,
            context.client.allowed_scope,
            context.client.default_scope,
        )

        token_set = await self._issue(
            client=context.client,
            user_id=None,
            scope=scope,
            grant_type=GrantType.CLIENT_CREDENTIALS,
            auth_time=datetime.now(timezone.utc),
            with_refresh=False,
            expires_in=settings.client_token_expires_in,
        )
        stats_service.increment("clientToken")
        return token_set

    async def grant_refresh_token(self, context: GrantContext) -> TokenSet:
        """
        Issue a new access token from a refresh token

        The new token carries the scope and auth time stored with the
        refresh token; the requested scope is ignored. The refresh token is
        not rotated. The user and client behind the refresh token must still
        exist.
        """
        raw_token = context.refresh_token or ""
        record = await self.stores.refresh.find(raw_token)
        record = credential_validator.validate_refresh_token(record, raw_token, context.client)

        credential_validator.client_exists(await oauth_client_service.get_by_id(context.db, record.client_id))
        if record.user_id:
            credential_validator.user_exists(await user_service.get_by_id(context.db, record.user_id))

        expires_in = (
            settings.access_token_expires_in
            if record.user_id
            else settings.client_token_expires_in
        )
        token_set = await self._issue(
            client=context.client,
            user_id=record.user_id,
            scope=record.scope,
            grant_type=GrantType.REFRESH_TOKEN,
            auth_time=record.auth_time,
            with_refresh=False,
            expires_in=expires_in,
        )
        stats_service.increment("refreshToken")
        return token_set

    # ==================== Minting ====================

    async def _issue(
        self,
        client: OAuthClient,
        user_id: str | None,
        scope: list[str],
        grant_type: GrantType,
        auth_time: datetime,
        with_refresh: bool,
        expires_in: int | None = None,
    ) -> TokenSet:
        """Mint and store an access token, plus a refresh token when eligible"""
        expires_in = expires_in or settings.access_token_expires_in
        subject = user_id or client.id
        now = datetime.now(timezone.utc)

        access_token = token_service.create_token(subject, expires_in)
        await self.stores.access.save(
            access_token,
            now + timedelta(seconds=expires_in),
            user_id,
            client.id,
            scope,
            grant_type,
            auth_time,
        )

        refresh_token = None
        if with_refresh and not settings.disable_refresh_token_grant:
            refresh_token = token_service.create_token(subject, settings.refresh_token_expires_in)
            await self.stores.refresh.save(
                refresh_token,
                now + timedelta(seconds=settings.refresh_token_expires_in),
                user_id,
                client.id,
                scope,
                grant_type,
                auth_time,
            )

        logger.info(
            f"[TRACE] Tokens issued: grant_type={grant_type.value}, client={client.client_id}",
            extra={
                "trace_point": "tokens_issued",
                "grant_type": grant_type.value,
                "client_id": client.client_id,
                "user_id": user_id,
                "with_refresh": refresh_token is not None,
            },
        )

        return TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            scope=scope,
            auth_time=auth_time,
            grant_type=grant_type,
        )


# Global instance
grant_service = GrantService()
