from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from dispensary.domain.users.models import User


class UserRepository:
    """Repository for user data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_data: dict, password: str) -> User:
        """Create a new user"""
        user = User(**user_data)
        user.set_password(password)

        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        return user

    async def get_by_username(self, username: str) -> Optional[User]:
        """Live user with this username"""
        result = await self.db.execute(
            select(User).where(User.username == username, User.is_deleted.is_(False)).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[User]:
        result = await self.db.execute(
            select(User)
            .where(User.is_deleted.is_(False))
            .order_by(User.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
