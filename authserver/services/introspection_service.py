"""Token introspection and revocation"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger, settings
from authserver.core.errors import AuthServerError, InvalidTokenError
from authserver.schemas.oauth import ClientSummary, IntrospectionResponse
from authserver.schemas.token import TokenRecord
from authserver.schemas.user import UserSummary
from authserver.services.credential_validator import credential_validator
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.stats_service import stats_service
from authserver.services.token_store import TokenStore, TokenStores, token_stores
from authserver.services.user_service import user_service


class IntrospectionService:
    """Looks up live tokens and revokes them"""

    def __init__(self, stores: TokenStores | None = None):
        self.stores = stores or token_stores

    async def introspect(self, db: AsyncSession, access_token: str) -> IntrospectionResponse:
        """
        Describe a live access token

        Args:
            db: Database session
            access_token: Raw signed access token

        Returns:
            Introspection document

        Raises:
            AuthServerError: If the token is unknown, malformed, expired,
                fails verification, or its client or user is gone
        """
        record = await self.stores.access.find(access_token)
        claims = credential_validator.validate_token(record, access_token)

        client = credential_validator.client_exists(
            await oauth_client_service.get_by_id(db, record.client_id)
        )
        user = None
        if record.user_id:
            user = credential_validator.user_exists(await user_service.get_by_id(db, record.user_id))

        stats_service.increment("introspect")

        now = datetime.now(timezone.utc)
        return IntrospectionResponse(
            issuer=settings.issuer,
            jti=claims.jti,
            sub=claims.sub,
            exp=claims.exp,
            iat=claims.iat,
            grant_type=record.grant_type,
            expires_in=int((record.expiration_date - now).total_seconds()),
            auth_time=int(record.auth_time.timestamp()),
            scope=record.scope,
            client=ClientSummary.model_validate(client),
            user=UserSummary.model_validate(user) if user else None,
        )

    async def revoke(
        self,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> list[TokenRecord]:
        """
        Revoke an access token, a refresh token, or both

        The access token, when given, is revoked first; the refresh token is
        only processed once that has succeeded.

        Returns:
            Revoked records

        Raises:
            InvalidTokenError: If no token was supplied, or a supplied token
                is unknown, invalid or already revoked
        """
        if not access_token and not refresh_token:
            raise InvalidTokenError("No token supplied")

        revoked = []
        if access_token:
            revoked.append(await self._revoke_one(self.stores.access, access_token, "access_token"))
        if refresh_token:
            revoked.append(await self._revoke_one(self.stores.refresh, refresh_token, "refresh_token"))

        return revoked

    async def revoke_all(self) -> dict[str, int]:
        """Remove every access token, refresh token and authorization code"""
        counts = {
            "access_tokens": len(await self.stores.access.remove_all()),
            "refresh_tokens": len(await self.stores.refresh.remove_all()),
            "authorization_codes": len(await self.stores.codes.remove_all()),
        }
        logger.warning(f"All tokens revoked: {counts}")
        return counts

    async def _revoke_one(self, store: TokenStore, token: str, kind: str) -> TokenRecord:
        record = await store.find(token)
        try:
            credential_validator.validate_token(record, token)
        except AuthServerError as e:
            raise InvalidTokenError(f"{kind} failed validation") from e

        deleted = await store.delete(token)
        if deleted is None:
            raise InvalidTokenError(f"error deleting {kind}")

        logger.info(
            f"[TRACE] Token revoked: {kind}",
            extra={"trace_point": "token_revoked", "kind": kind, "client_id": deleted.client_id},
        )
        return deleted


# Global instance
introspection_service = IntrospectionService()
