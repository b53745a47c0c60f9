from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dispensary.core.exceptions import ConflictError
from dispensary.domain.users.models import User
from dispensary.domain.users.repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user management operations"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def create_user(self, user_data: dict) -> User:
        """Create a staff account; the password is stored only as a bcrypt hash"""
        user_data = dict(user_data)
        password = user_data.pop("password")

        existing_user = await self.user_repo.get_by_username(user_data["username"])
        if existing_user:
            logger.warning(f"Rejected duplicate username {user_data['username']}")
            raise ConflictError(
                message="Username already exists",
                details={"username": user_data["username"]}
            )

        user = await self.user_repo.create(user_data, password)
        logger.info(f"Created user {user.id} ({user.username}, role={user.role.value})")
        return user

    async def get_users(self, skip: int = 0, limit: int = 100) -> List[User]:
        return await self.user_repo.get_all(skip=skip, limit=limit)
