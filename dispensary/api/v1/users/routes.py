from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dispensary.api.v1.users.schemas import UserCreate, UserResponse, UserListResponse
from dispensary.domain.users.service import UserService
from dispensary.infrastructure.database import get_db

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a staff account"""
    user = await UserService(db).create_user(user_data.model_dump())
    return UserResponse.model_validate(user)


@router.get("", response_model=UserListResponse)
async def get_users(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100)
):
    users = await UserService(db).get_users(skip=skip, limit=limit)
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])
