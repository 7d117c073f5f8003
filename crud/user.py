"""
UserRepository for database operations on User model
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from config.settings import SUBSCRIPTION_PLANS
from database_models import User, utcnow


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
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            user_id: User's ID

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                - password_hash: str
                Optional:
                - full_name: str

        Returns:
            Created User object. New users always start on the free plan.
        """
        user = User(
            email=user_data["email"].lower(),
            password_hash=user_data["password_hash"],
            full_name=user_data.get("full_name"),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)  # Refresh to get the generated ID
        return user

    async def set_subscription_plan(self, user_id: int, plan: str) -> None:
        """
        Overwrite a user's cached plan.
        Only the subscription engine calls this.
        """
        if plan not in SUBSCRIPTION_PLANS:
            raise ValueError(f"Unknown subscription plan: {plan}")
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(subscription_plan=plan, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def get_subscription_plan(self, user_id: int) -> Optional[str]:
        """Current plan column for user_id, bypassing any loaded User instance."""
        result = await self.db.execute(
            select(User.subscription_plan).where(User.id == user_id)
        )
        return result.scalar_one_or_none()
