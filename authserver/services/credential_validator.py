"""Credential validation

Synchronous checks over records the caller has already fetched. Nothing
here touches the database or the token stores; failures raise the typed
errors from core.errors and successes return the checked object so calls
can be chained.
"""

from datetime import datetime, timezone

from authserver.core.errors import (
    BadCredentialsError,
    ClientMismatchError,
    ExpiredError,
    InsufficientScopeError,
    LoginDisabledError,
    NotFoundError,
    RedirectMismatchError,
)
from authserver.models.oauth_client import OAuthClient
from authserver.models.user import User
from authserver.schemas.token import AuthorizationCodeRecord, JWTPayload, TokenRecord
from authserver.services.scope_service import scope_service
from authserver.services.token_service import token_service
from authserver.utils.crypto import verify_password


class CredentialValidator:
    """Pure validation of users, clients, codes and tokens"""

    def user_exists(self, user: User | None) -> User:
        """Fail NotFound unless a live user record was found"""
        if user is None or user.deleted:
            raise NotFoundError("User not found")
        return user

    def validate_user(self, user: User | None, password: str) -> User:
        """
        Validate a user's password

        Args:
            user: Fetched user record (or None)
            password: Supplied plain text password

        Returns:
            The user

        Raises:
            NotFoundError: If the user does not exist
            LoginDisabledError: If the user's login is disabled
            BadCredentialsError: If the password does not match
        """
        user = self.user_exists(user)
        if user.login_disabled:
            raise LoginDisabledError("User login disabled", details={"user_id": user.id})
        if not verify_password(password, user.password_hash):
            raise BadCredentialsError("Invalid password", details={"user_id": user.id})
        return user

    def client_exists(self, client: OAuthClient | None) -> OAuthClient:
        """Fail NotFound unless a live, enabled client record was found"""
        if client is None or client.deleted or client.client_disabled:
            raise NotFoundError("Client not found")
        return client

    def validate_client(self, client: OAuthClient | None, client_secret: str) -> OAuthClient:
        """
        Validate a client's secret

        Raises:
            NotFoundError: If the client does not exist or is disabled
            BadCredentialsError: If the secret does not match
        """
        client = self.client_exists(client)
        if not verify_password(client_secret, client.client_secret_hash):
            raise BadCredentialsError("Invalid client secret", details={"client_id": client.client_id})
        return client

    def validate_authorization_code(
        self,
        record: AuthorizationCodeRecord | None,
        client: OAuthClient,
        redirect_uri: str,
    ) -> AuthorizationCodeRecord:
        """
        Validate a consumed authorization code against the redeeming client

        Raises:
            NotFoundError: If the code was unknown or already used
            ExpiredError: If the code is past its expiration date
            ClientMismatchError: If the code was issued to another client
            RedirectMismatchError: If the redirect URI differs from the original request
        """
        if record is None:
            raise NotFoundError("Authorization code not found")
        if datetime.now(timezone.utc) > record.expiration_date:
            raise ExpiredError("Authorization code expired")
        if record.client_id != client.id:
            raise ClientMismatchError("Authorization code client mismatch")
        if record.redirect_uri != redirect_uri:
            raise RedirectMismatchError("Authorization code redirect_uri mismatch")
        return record

    def validate_refresh_token(
        self,
        record: TokenRecord | None,
        refresh_token: str,
        client: OAuthClient,
    ) -> TokenRecord:
        """
        Validate a refresh token for the redeeming client

        Raises:
            NotFoundError: If no record exists for the token
            InvalidSignatureError / ExpiredTokenError: If the token does not verify
            ClientMismatchError: If the token was issued to another client
        """
        if record is None:
            raise NotFoundError("Refresh token not found")
        token_service.verify_token(refresh_token)
        if record.client_id != client.id:
            raise ClientMismatchError("Refresh token client mismatch")
        return record

    def validate_token(self, record: TokenRecord | None, token: str) -> JWTPayload:
        """
        Validate a stored access or refresh token

        Returns:
            Verified claims

        Raises:
            NotFoundError: If no record exists for the token
            InvalidSignatureError / ExpiredTokenError: If the token does not verify
            ExpiredError: If the stored record is past its expiration date
        """
        if record is None:
            raise NotFoundError("Token not found")
        claims = token_service.verify_token(token)
        if record.is_expired:
            raise ExpiredError("Token record expired")
        return claims

    def require_scope(self, scope: list[str], required: list[str]) -> list[str]:
        """Fail InsufficientScope unless scope holds one of the required values"""
        if not scope_service.has_any(scope, required):
            raise InsufficientScopeError(
                "Client scope not authorized",
                details={"required": required},
            )
        return scope


# Global instance
credential_validator = CredentialValidator()
