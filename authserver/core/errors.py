"""
Exception hierarchy for the authorization server.

Validators and the token codec raise the specific subclasses below. The
grant engine collapses every one of them into GrantDeniedError before the
protocol layer sees it, so clients cannot tell which check failed.
"""

from typing import Any


class AuthServerError(Exception):
    """
    Base exception for all authorization errors.

    Attributes:
        message: Error message
        details: Additional error details (never raw secrets or tokens)
        error_code: Error code used in logs and API responses
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ):
        self.message = message or self.__class__.__name__
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dict for logging"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class NotFoundError(AuthServerError):
    """User, client, token or code is absent"""

    error_code = "not_found"


class UnknownClientError(NotFoundError):
    """No client matches the requested client_id"""

    error_code = "unknown_client"


class BadCredentialsError(AuthServerError):
    """Password or client secret does not match"""

    error_code = "bad_credentials"


class LoginDisabledError(AuthServerError):
    """User login has been administratively disabled"""

    error_code = "login_disabled"


class ExpiredError(AuthServerError):
    """Authorization code or stored token is past its expiration date"""

    error_code = "expired"


class ClientMismatchError(AuthServerError):
    """Record was issued to a different client"""

    error_code = "client_mismatch"


class RedirectMismatchError(AuthServerError):
    """Redirect URI differs from the one bound to the authorization code"""

    error_code = "redirect_mismatch"


class RedirectNotRegisteredError(AuthServerError):
    """Redirect URI is not registered for the client"""

    error_code = "redirect_not_registered"


class MalformedTokenError(AuthServerError):
    """Token structure cannot be parsed"""

    error_code = "malformed_token"


class InvalidSignatureError(AuthServerError):
    """Token signature does not verify against the server key"""

    error_code = "invalid_signature"


class ExpiredTokenError(AuthServerError):
    """Token exp claim is in the past"""

    error_code = "expired_token"


class InsufficientScopeError(AuthServerError):
    """Client or user lacks a required scope"""

    error_code = "insufficient_scope"


class AccessDeniedError(AuthServerError):
    """User declined consent"""

    error_code = "access_denied"


class InvalidTokenError(AuthServerError):
    """Token supplied for revocation is missing, unknown or invalid"""

    error_code = "invalid_token"


class GrantDisabledError(AuthServerError):
    """Grant type is unsupported or administratively disabled"""

    error_code = "unsupported_grant_type"


class GrantDeniedError(AuthServerError):
    """Opaque outcome of any failed grant; the cause is only logged"""

    error_code = "invalid_grant"
