"""User service for user management"""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from authserver.core.config import logger
from authserver.models.user import User
from authserver.schemas.user import UserCreate
from authserver.utils.crypto import hash_password


class UserService:
    """Queries over non-deleted users"""

    async def create_user(self, db: AsyncSession, user_data: UserCreate) -> User:
        """
        Create a new user

        Args:
            db: Database session
            user_data: User creation data

        Returns:
            Created user

        Raises:
            ValueError: If a non-deleted user already has the username
        """
        existing_user = await self.get_by_username(db, user_data.username)
        if existing_user:
            raise ValueError(f"User with username '{user_data.username}' already exists")

        user = User(
            username=user_data.username,
            password_hash=hash_password(user_data.password),
            name=user_data.name,
            role=list(user_data.role),
            login_disabled=user_data.login_disabled,
        )

        db.add(user)
        await db.commit()
        await db.refresh(user)

        logger.info(f"User created: {user.id} ({user.username})")

        return user

    async def get_by_id(self, db: AsyncSession, user_id: str) -> User | None:
        """Get a non-deleted user by ID"""
        result = await db.execute(select(User).where(User.id == user_id, User.deleted.is_(False)))
        return result.scalar_one_or_none()

    async def get_by_username(self, db: AsyncSession, username: str) -> User | None:
        """Get a non-deleted user by username"""
        result = await db.execute(
            select(User).where(User.username == username, User.deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def update_login_time(self, db: AsyncSession, user: User) -> User:
        """Record a successful login"""
        user.last_login = datetime.now(timezone.utc)
        await db.commit()
        return user

    async def delete_user(self, db: AsyncSession, user_id: str) -> bool:
        """
        Soft-delete a user

        Returns:
            True if a user was deleted, False if not found
        """
        user = await self.get_by_id(db, user_id)
        if not user:
            return False

        user.deleted = True
        await db.commit()

        logger.info(f"User deleted: {user.id} ({user.username})")

        return True


# Global instance
user_service = UserService()
