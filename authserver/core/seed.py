"""Database seeding with default data"""

import secrets
import string

from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger, settings
from authserver.models.database import async_session_maker
from authserver.schemas.oauth import OAuthClientCreate
from authserver.schemas.user import UserCreate
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.user_service import user_service
from authserver.utils.crypto import generate_secret

ADMIN_ROLE = ["api.read", "api.write", "user.password", "user.admin", "offline_access"]

DEFAULT_CLIENTS = [
    {
        "client_id": "web-app",
        "name": "First-party web application",
        "trusted_client": True,
        "allowed_scope": ["auth.none", "auth.info", "auth.token", "api.read", "api.write", "offline_access"],
        "default_scope": ["api.read"],
        "allowed_redirect_uri": ["http://localhost:3000/callback"],
    },
    {
        "client_id": "service-client",
        "name": "Internal machine client",
        "trusted_client": False,
        "allowed_scope": ["auth.client", "auth.info", "api.read"],
        "default_scope": ["api.read"],
        "allowed_redirect_uri": [],
    },
]


def generate_secure_password(length: int = 16) -> str:
    """Generate a secure random password"""
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    return "".join(secrets.choice(alphabet) for _ in range(length))


async def seed_default_data() -> None:
    """Seed database with the admin user and default OAuth clients"""
    async with async_session_maker() as db:
        try:
            await _create_default_user(db)
            await _create_default_oauth_clients(db)
        except Exception as e:
            logger.error(f"Failed to seed default data: {e}")
            await db.rollback()
            raise


async def _create_default_user(db: AsyncSession) -> None:
    if await user_service.get_by_username(db, settings.admin_username):
        logger.debug("Admin user already exists")
        return

    admin_password = settings.admin_password
    if not admin_password:
        admin_password = generate_secure_password()
        logger.warning("=" * 80)
        logger.warning("AUTH_SERVER__ADMIN_PASSWORD not set! Generated random admin password:")
        logger.warning(f"Username: {settings.admin_username}")
        logger.warning(f"Password: {admin_password}")
        logger.warning("PLEASE SAVE THIS PASSWORD - IT WILL NOT BE SHOWN AGAIN!")
        logger.warning("=" * 80)

    await user_service.create_user(
        db,
        UserCreate(
            username=settings.admin_username,
            password=admin_password,
            name="Administrator",
            role=ADMIN_ROLE,
        ),
    )
    logger.info("✓ Admin user created successfully")


async def _create_default_oauth_clients(db: AsyncSession) -> None:
    for client_data in DEFAULT_CLIENTS:
        if await oauth_client_service.get_by_client_id(db, client_data["client_id"]):
            logger.debug(f"OAuth client already exists: {client_data['client_id']}")
            continue

        client_secret = generate_secret(16)
        await oauth_client_service.create_client(
            db,
            OAuthClientCreate(client_secret=client_secret, **client_data),
        )
        logger.warning(
            f"✓ OAuth client created: {client_data['client_id']} (secret: {client_secret}) "
            "- store this secret, it is only shown once"
        )
