"""OAuth schemas"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from authserver.schemas.user import UserSummary


class GrantType(str, Enum):
    """How a token was obtained"""

    AUTHORIZATION_CODE = "authorization_code"
    IMPLICIT = "implicit"
    PASSWORD = "password"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"


class ResponseType(str, Enum):
    """Authorization endpoint response types"""

    CODE = "code"
    TOKEN = "token"


class TokenResponse(BaseModel):
    """OAuth2 token response"""

    access_token: str
    refresh_token: str | None = None
    expires_in: int
    token_type: str = "Bearer"
    scope: str
    auth_time: int
    grant_type: GrantType


class TokenErrorResponse(BaseModel):
    """OAuth2 error response"""

    error: str
    error_description: str | None = None
    error_uri: str | None = None


class ClientSummary(BaseModel):
    """Client as shown in introspection and consent documents"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    name: str


class IntrospectionResponse(BaseModel):
    """Metadata about a live access token"""

    active: bool = True
    revocable: bool = True
    issuer: str
    jti: str
    sub: str
    exp: int
    iat: int
    grant_type: GrantType
    expires_in: int
    auth_time: int
    scope: list[str]
    client: ClientSummary
    user: UserSummary | None = None


class AuthorizationTransaction(BaseModel):
    """Pending authorization request held in the user's session until decided"""

    transaction_id: str
    client_id: str = Field(..., description="Internal id of the client")
    redirect_uri: str
    response_type: ResponseType = ResponseType.CODE
    requested_scope: list[str] = Field(default_factory=list)
    scope: list[str] = Field(default_factory=list, description="Negotiated scope")
    user_id: str
    auth_time: int
    state: str | None = None


class AuthorizationResult(BaseModel):
    """Parameters returned to the client's redirect URI after a decision"""

    redirect_uri: str
    response_type: ResponseType
    params: dict[str, str]


class OAuthClientCreate(BaseModel):
    """Schema for registering an OAuth client"""

    client_id: str = Field(..., min_length=1, max_length=255)
    client_secret: str = Field(..., min_length=8, max_length=64)
    name: str = Field(..., min_length=1, max_length=64)
    trusted_client: bool = False
    allowed_scope: list[str] = Field(default_factory=list)
    default_scope: list[str] = Field(default_factory=list)
    allowed_redirect_uri: list[str] = Field(default_factory=list)
    client_disabled: bool = False
