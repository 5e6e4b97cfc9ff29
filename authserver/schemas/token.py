"""Token schemas (JWT claims and stored metadata records)"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from authserver.schemas.oauth import GrantType


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class JWTPayload(BaseModel):
    """Claims carried by every signed token"""

    jti: str = Field(..., description="JWT ID (store lookup key)")
    sub: str = Field(..., description="Subject (user id, or client id for machine tokens)")
    exp: int = Field(..., description="Expiration time (Unix timestamp)")
    iat: int = Field(..., description="Issued at (Unix timestamp)")


class TokenRecord(BaseModel):
    """Access or refresh token metadata, keyed by the token's jti"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str | None = None
    client_id: str
    expiration_date: datetime
    scope: list[str] = Field(default_factory=list)
    grant_type: GrantType
    auth_time: datetime

    @field_validator("expiration_date", "auth_time")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_expired(self) -> bool:
        """Check if the record is past its expiration date"""
        return datetime.now(timezone.utc) > self.expiration_date


class AuthorizationCodeRecord(BaseModel):
    """Authorization code metadata, keyed by the code itself"""

    model_config = ConfigDict(from_attributes=True)

    code: str
    client_id: str
    redirect_uri: str
    user_id: str
    expiration_date: datetime
    scope: list[str] = Field(default_factory=list)
    auth_time: datetime

    @field_validator("expiration_date", "auth_time")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_expired(self) -> bool:
        """Check if the code is past its expiration date"""
        return datetime.now(timezone.utc) > self.expiration_date


class TokenSet(BaseModel):
    """Tokens minted by a single grant"""

    access_token: str
    refresh_token: str | None = None
    expires_in: int
    token_type: str = "Bearer"
    scope: list[str]
    auth_time: datetime
    grant_type: GrantType
