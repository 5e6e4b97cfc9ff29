"""Pydantic schemas"""

from authserver.schemas.oauth import (
    AuthorizationResult,
    AuthorizationTransaction,
    ClientSummary,
    GrantType,
    IntrospectionResponse,
    OAuthClientCreate,
    ResponseType,
    TokenErrorResponse,
    TokenResponse,
)
from authserver.schemas.token import AuthorizationCodeRecord, JWTPayload, TokenRecord, TokenSet
from authserver.schemas.user import UserCreate, UserSummary

__all__ = [
    # OAuth
    "GrantType",
    "ResponseType",
    "TokenResponse",
    "TokenErrorResponse",
    "ClientSummary",
    "IntrospectionResponse",
    "AuthorizationTransaction",
    "AuthorizationResult",
    "OAuthClientCreate",
    # Token
    "JWTPayload",
    "TokenRecord",
    "AuthorizationCodeRecord",
    "TokenSet",
    # User
    "UserCreate",
    "UserSummary",
]
