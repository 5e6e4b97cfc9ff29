"""FastAPI dependencies"""

from typing import Annotated

from fastapi import Depends, Form, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from authserver.api.errors import OAuthHTTPError
from authserver.core.config import logger
from authserver.core.errors import AuthServerError
from authserver.models.database import get_db
from authserver.models.oauth_client import OAuthClient
from authserver.models.user import User
from authserver.services.credential_validator import credential_validator
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.user_service import user_service
from authserver.utils.validators import validate_client_id, validate_client_secret

# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]

_basic = HTTPBasic(auto_error=False)


def _invalid_client(description: str) -> OAuthHTTPError:
    return OAuthHTTPError(
        "invalid_client",
        description,
        status_code=401,
        headers={"WWW-Authenticate": 'Basic realm="oauth"'},
    )


async def get_authenticated_client(
    db: DBSession,
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic)],
    client_id: Annotated[str | None, Form()] = None,
    client_secret: Annotated[str | None, Form()] = None,
) -> OAuthClient:
    """
    Authenticate the calling client

    Accepts HTTP Basic credentials or client_id/client_secret form fields.

    Raises:
        OAuthHTTPError: 401 invalid_client on any failure
    """
    if credentials is not None:
        client_id, client_secret = credentials.username, credentials.password

    if not client_id or not client_secret:
        raise _invalid_client("Client authentication required")

    for is_valid, _ in (validate_client_id(client_id), validate_client_secret(client_secret)):
        if not is_valid:
            raise _invalid_client("Client authentication failed")

    client = await oauth_client_service.get_by_client_id(db, client_id)
    try:
        return credential_validator.validate_client(client, client_secret)
    except AuthServerError as e:
        logger.warning(
            f"Client authentication failed: {client_id}",
            extra={"client_id": client_id, "reason": e.error_code},
        )
        raise _invalid_client("Client authentication failed") from e


async def get_session_user(request: Request, db: DBSession) -> User | None:
    """Logged-in user for the current session, or None"""
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    user = await user_service.get_by_id(db, user_id)
    if user is None or user.login_disabled:
        request.session.clear()
        return None
    return user


AuthenticatedClient = Annotated[OAuthClient, Depends(get_authenticated_client)]
SessionUser = Annotated[User | None, Depends(get_session_user)]


def get_client_ip(request: Request) -> str:
    """Get client IP address"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"
