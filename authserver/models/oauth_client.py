"""OAuth Client model"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from authserver.models.database import Base


class OAuthClient(Base):
    """Registered client application"""

    __tablename__ = "authclients"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Client identification (client_id unique among non-deleted clients)
    client_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    client_secret_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Trusted clients skip the consent dialog
    trusted_client: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Permissions
    allowed_scope: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    default_scope: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    allowed_redirect_uri: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    # Status
    client_disabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<OAuthClient(id={self.id}, client_id={self.client_id}, name={self.name})>"
