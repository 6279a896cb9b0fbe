"""
UserRepository for database operations on User model
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from database_models import PasswordReset, User


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_verification_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email_verification_token == token)
        )
        return result.scalar_one_or_none()

    async def list_users(self) -> List[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
        return list(result.scalars().all())

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - name: str
                - email: str
                - hashed_password: str
                Any other User column may be supplied as well.

        Returns:
            Created User object
        """
        data = dict(user_data)
        data["email"] = data["email"].strip().lower()
        user = User(**data)
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)  # Refresh to get the generated ID
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"subscription_status": "active"})

        Returns:
            Updated User object
        """
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update_by_subscription_id(self, subscription_id: str, updates: dict) -> int:
        """
        Apply updates to every user holding the given Stripe subscription id.

        Returns:
            Number of rows changed (0 when no user matches)
        """
        result = await self.db.execute(
            update(User)
            .where(User.stripe_subscription_id == subscription_id)
            .values(**updates)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def update_by_id(self, user_id: int, updates: dict) -> int:
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**updates)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def add_password_reset(self, reset: PasswordReset) -> PasswordReset:
        self.db.add(reset)
        await self.db.flush()
        return reset

    async def get_password_reset(self, token: str) -> Optional[PasswordReset]:
        result = await self.db.execute(
            select(PasswordReset).where(PasswordReset.token == token)
        )
        return result.scalar_one_or_none()
