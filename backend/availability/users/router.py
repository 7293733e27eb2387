from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from availability.auth.dependencies import get_current_user
from availability.database import get_db
from availability.users.models import ProfileRead, ProfileUpdate, UserDB, UserRead
from availability.users.service import get_user_counts, update_profile

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileRead)
async def get_profile(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileRead:
    """The current user with counts of groups, memberships, events and responses."""
    counts = await get_user_counts(current_user.id, db)
    return ProfileRead(**current_user.model_dump(), counts=counts)


@router.put("", response_model=UserRead)
async def update_profile_endpoint(
    data: ProfileUpdate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserRead:
    user = await update_profile(current_user, data, db)
    return UserRead.model_validate(user)
