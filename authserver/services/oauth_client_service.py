"""OAuth client service"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger
from authserver.models.oauth_client import OAuthClient
from authserver.schemas.oauth import OAuthClientCreate
from authserver.utils.crypto import hash_password


class OAuthClientService:
    """Queries over non-deleted OAuth clients"""

    async def create_client(self, db: AsyncSession, client_data: OAuthClientCreate) -> OAuthClient:
        """
        Register a new OAuth client

        Args:
            db: Database session
            client_data: Client creation data

        Returns:
            Created client

        Raises:
            ValueError: If a non-deleted client already has the client_id
        """
        existing = await self.get_by_client_id(db, client_data.client_id)
        if existing:
            raise ValueError(f"clientId '{client_data.client_id}' already exists")

        client = OAuthClient(
            client_id=client_data.client_id,
            client_secret_hash=hash_password(client_data.client_secret),
            name=client_data.name,
            trusted_client=client_data.trusted_client,
            allowed_scope=list(client_data.allowed_scope),
            default_scope=list(client_data.default_scope),
            allowed_redirect_uri=list(client_data.allowed_redirect_uri),
            client_disabled=client_data.client_disabled,
        )

        db.add(client)
        await db.commit()
        await db.refresh(client)

        logger.info(f"OAuth client created: {client.client_id}")

        return client

    async def get_by_id(self, db: AsyncSession, id: str) -> OAuthClient | None:
        """Get a non-deleted client by internal ID"""
        result = await db.execute(
            select(OAuthClient).where(OAuthClient.id == id, OAuthClient.deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def get_by_client_id(self, db: AsyncSession, client_id: str) -> OAuthClient | None:
        """Get a non-deleted client by its public client_id"""
        result = await db.execute(
            select(OAuthClient).where(
                OAuthClient.client_id == client_id,
                OAuthClient.deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def delete_client(self, db: AsyncSession, id: str) -> bool:
        """Soft-delete a client; returns False if not found"""
        client = await self.get_by_id(db, id)
        if not client:
            return False

        client.deleted = True
        await db.commit()

        logger.info(f"OAuth client deleted: {client.client_id}")

        return True


# Global instance
oauth_client_service = OAuthClientService()
