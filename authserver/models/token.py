"""Token and authorization code metadata models

Rows are keyed by the token's jti (or the code itself); the raw signed
token is never persisted.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from authserver.models.database import Base


class _TokenColumns:
    """Columns shared by the access and refresh token tables"""

    # jti claim of the signed token
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Null for client-only (machine) tokens
    user_id: Mapped[str | None] = mapped_column("userID", String(36), nullable=True)
    client_id: Mapped[str] = mapped_column("clientID", String(36), nullable=False)

    expiration_date: Mapped[datetime] = mapped_column(
        "expirationDate",
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    scope: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    grant_type: Mapped[str] = mapped_column("grantType", String(32), nullable=False)
    auth_time: Mapped[datetime] = mapped_column("authTime", DateTime(timezone=True), nullable=False)


class AccessToken(_TokenColumns, Base):
    """Access token metadata"""

    __tablename__ = "accesstokens"

    def __repr__(self) -> str:
        return f"<AccessToken(id={self.id}, client_id={self.client_id}, grant_type={self.grant_type})>"


class RefreshToken(_TokenColumns, Base):
    """Refresh token metadata"""

    __tablename__ = "refreshtokens"

    def __repr__(self) -> str:
        return f"<RefreshToken(id={self.id}, client_id={self.client_id}, grant_type={self.grant_type})>"


class AuthorizationCode(Base):
    """Authorization code issued on a consent decision"""

    __tablename__ = "authorizationcodes"

    code: Mapped[str] = mapped_column(String(255), primary_key=True)
    client_id: Mapped[str] = mapped_column("clientID", String(36), nullable=False)
    redirect_uri: Mapped[str] = mapped_column("redirectURI", String(2048), nullable=False)
    user_id: Mapped[str] = mapped_column("userID", String(36), nullable=False)
    expiration_date: Mapped[datetime] = mapped_column(
        "expirationDate",
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    scope: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    auth_time: Mapped[datetime] = mapped_column("authTime", DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<AuthorizationCode(client_id={self.client_id}, user_id={self.user_id})>"
