"""Request parameter validation

Shape checks on inbound form and query values, applied by the API layer
before any credential is looked up.
"""

import re

from authserver.core.config import settings

_ID_REGEX = re.compile(r"^[a-zA-Z0-9.\-_@]+$")
_SCOPE_REGEX = re.compile(r"^[a-zA-Z0-9 .,_]*$")
_URI_REGEX = re.compile(r"^[a-zA-Z0-9 :,\"'/%._\-?&=#+~]+$")
_JWT_REGEX = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")


def validate_username(username: str | None) -> tuple[bool, str | None]:
    """
    Validate username format

    Args:
        username: Username to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not username:
        return False, "Username is required"

    if not settings.username_min_length <= len(username) <= settings.username_max_length:
        return False, (
            f"Username must be {settings.username_min_length} to "
            f"{settings.username_max_length} characters"
        )

    if not _ID_REGEX.match(username):
        return False, "Username contains invalid characters"

    return True, None


def validate_password(password: str | None) -> tuple[bool, str | None]:
    """
    Validate password length

    Args:
        password: Password to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, "Password is required"

    if not settings.password_min_length <= len(password) <= settings.password_max_length:
        return False, (
            f"Password must be {settings.password_min_length} to "
            f"{settings.password_max_length} characters"
        )

    return True, None


def validate_client_id(client_id: str | None) -> tuple[bool, str | None]:
    """Validate client_id format"""
    if not client_id:
        return False, "Client ID is required"

    if len(client_id) > 255:
        return False, "Client ID is too long (max 255 characters)"

    if not _ID_REGEX.match(client_id):
        return False, "Client ID contains invalid characters"

    return True, None


def validate_client_secret(client_secret: str | None) -> tuple[bool, str | None]:
    """Validate client_secret length"""
    if not client_secret:
        return False, "Client secret is required"

    if not settings.client_secret_min_length <= len(client_secret) <= settings.client_secret_max_length:
        return False, "Client secret has invalid length"

    return True, None


def validate_scope(scope: str | None) -> tuple[bool, str | None]:
    """
    Validate scope format

    Args:
        scope: Comma or space separated scopes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not scope:
        return True, None  # Empty scope is allowed

    if len(scope) > 1024:
        return False, "Scope is too long"

    if not _SCOPE_REGEX.match(scope):
        return False, "Scope contains invalid characters"

    return True, None


def validate_redirect_uri(redirect_uri: str | None) -> tuple[bool, str | None]:
    """Validate redirect_uri format"""
    if not redirect_uri:
        return False, "Redirect URI is required"

    if len(redirect_uri) > 2048:
        return False, "Redirect URI is too long"

    if not _URI_REGEX.match(redirect_uri):
        return False, "Redirect URI contains invalid characters"

    return True, None


def validate_transaction_id(transaction_id: str | None) -> tuple[bool, str | None]:
    """Validate a consent decision transaction id"""
    if not transaction_id or len(transaction_id) > 64:
        return False, "Invalid transaction_id"

    return True, None


def validate_jwt(token: str | None) -> tuple[bool, str | None]:
    """Check that a value has the compact three-part JWT shape"""
    if not token or not _JWT_REGEX.match(token):
        return False, "Invalid JWT Token"

    return True, None
