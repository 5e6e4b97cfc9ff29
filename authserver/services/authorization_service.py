"""
Authorization transactions (code and implicit flows).

An authorization request is checked and turned into an
AuthorizationTransaction, which the protocol layer keeps in the user's
session until the consent decision arrives. Trusted clients are decided
immediately. An allowed decision issues an authorization code (or, for
response_type=token, an implicit access token); a denied one issues nothing.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger, settings
from authserver.core.errors import (
    AccessDeniedError,
    GrantDisabledError,
    RedirectNotRegisteredError,
    UnknownClientError,
)
from authserver.models.oauth_client import OAuthClient
from authserver.models.user import User
from authserver.schemas.oauth import (
    AuthorizationResult,
    AuthorizationTransaction,
    GrantType,
    ResponseType,
)
from authserver.services.credential_validator import credential_validator
from authserver.services.grant_service import GrantContext, GrantService, grant_service
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.scope_service import scope_service
from authserver.services.user_service import user_service
from authserver.utils.crypto import generate_uid

_RESPONSE_GRANT_TYPES = {
    ResponseType.CODE: GrantType.AUTHORIZATION_CODE,
    ResponseType.TOKEN: GrantType.IMPLICIT,
}


class AuthorizationService:
    """Authorization request and consent decision"""

    def __init__(self, grants: GrantService | None = None):
        self.grants = grants or grant_service

    async def begin_authorization(
        self,
        db: AsyncSession,
        client_id: str,
        redirect_uri: str,
        requested_scope: list[str],
        user: User,
        auth_time: int,
        response_type: ResponseType = ResponseType.CODE,
        state: str | None = None,
    ) -> tuple[AuthorizationTransaction, OAuthClient]:
        """
        Validate an authorization request and open a transaction

        Args:
            db: Database session
            client_id: Public client_id from the request
            redirect_uri: Redirect URI from the request
            requested_scope: Requested scope (may be empty)
            user: Logged-in user
            auth_time: Epoch seconds of the user's login
            response_type: "code" or "token"
            state: Opaque client state echoed back on redirect

        Returns:
            Tuple of (transaction, client)

        Raises:
            GrantDisabledError: If the response type's grant is disabled
            UnknownClientError: If no enabled client matches client_id
            RedirectNotRegisteredError: If redirect_uri is not registered
            InsufficientScopeError: If the client may not request user tokens
        """
        if _RESPONSE_GRANT_TYPES[response_type] not in self.grants.enabled_grant_types():
            raise GrantDisabledError(f"response_type {response_type.value} is disabled")

        client = await oauth_client_service.get_by_client_id(db, client_id)
        if client is None or client.client_disabled:
            raise UnknownClientError("clientId not found", details={"client_id": client_id})

        if redirect_uri not in (client.allowed_redirect_uri or []):
            raise RedirectNotRegisteredError(
                "redirectURI not found",
                details={"client_id": client_id},
            )

        credential_validator.require_scope(client.allowed_scope, ["auth.token"])

        scope = scope_service.intersect(
            requested_scope,
            client.allowed_scope,
            client.default_scope,
            role=user.role,
            has_user=True,
        )

        transaction = AuthorizationTransaction(
            transaction_id=generate_uid(settings.decision_transaction_id_length),
            client_id=client.id,
            redirect_uri=redirect_uri,
            response_type=response_type,
            requested_scope=list(requested_scope),
            scope=scope,
            user_id=user.id,
            auth_time=auth_time,
            state=state,
        )

        logger.info(
            f"[TRACE] Authorization transaction opened for client={client.client_id}",
            extra={
                "trace_point": "authorization_begin",
                "client_id": client.client_id,
                "user_id": user.id,
                "trusted_client": client.trusted_client,
            },
        )

        return transaction, client

    async def decide(
        self,
        db: AsyncSession,
        transaction: AuthorizationTransaction,
        allowed: bool,
        scope: list[str] | None = None,
    ) -> AuthorizationResult:
        """
        Apply the user's consent decision

        Args:
            db: Database session
            transaction: Open transaction from begin_authorization
            allowed: The user's decision; forced True for trusted clients
            scope: Optional narrower scope chosen in the consent dialog

        Returns:
            Redirect parameters carrying the code or the implicit token

        Raises:
            AccessDeniedError: If the user declined
            NotFoundError: If the client or user disappeared meanwhile
        """
        client = credential_validator.client_exists(
            await oauth_client_service.get_by_id(db, transaction.client_id)
        )

        if client.trusted_client:
            allowed = True

        if not allowed:
            logger.info(
                f"[TRACE] Authorization denied by user for client={client.client_id}",
                extra={"trace_point": "authorization_denied", "client_id": client.client_id},
            )
            raise AccessDeniedError("User denied access")

        granted_scope = transaction.scope
        if scope:
            granted_scope = [s for s in transaction.scope if s in set(scope)]

        auth_time = datetime.fromtimestamp(transaction.auth_time, tz=timezone.utc)

        if transaction.response_type == ResponseType.CODE:
            code = generate_uid(settings.auth_code_length)
            await self.grants.stores.codes.save(
                code,
                client.id,
                transaction.redirect_uri,
                transaction.user_id,
                datetime.now(timezone.utc) + timedelta(seconds=settings.auth_code_expires_in),
                granted_scope,
                auth_time,
            )
            params = {"code": code}
        else:
            user = await user_service.get_by_id(db, transaction.user_id)
            token_set = await self.grants.grant_implicit(
                GrantContext(
                    db=db,
                    client=client,
                    user=user,
                    scope=granted_scope,
                    auth_time=auth_time,
                )
            )
            params = {
                "access_token": token_set.access_token,
                "token_type": token_set.token_type,
                "expires_in": str(token_set.expires_in),
                "scope": scope_service.to_scope_string(token_set.scope),
            }

        if transaction.state:
            params["state"] = transaction.state

        return AuthorizationResult(
            redirect_uri=transaction.redirect_uri,
            response_type=transaction.response_type,
            params=params,
        )


# Global instance
authorization_service = AuthorizationService()
