"""Database models"""

from authserver.models.audit_log import AuditLog
from authserver.models.database import Base, async_session_maker, close_db, get_db, init_db
from authserver.models.oauth_client import OAuthClient
from authserver.models.token import AccessToken, AuthorizationCode, RefreshToken
from authserver.models.user import User

__all__ = [
    "Base",
    "async_session_maker",
    "get_db",
    "init_db",
    "close_db",
    "User",
    "OAuthClient",
    "AccessToken",
    "RefreshToken",
    "AuthorizationCode",
    "AuditLog",
]
