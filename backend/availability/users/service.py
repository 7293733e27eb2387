# These functions are decoupled from FastAPI so they can be called
# from route handlers, the invite flow, scripts or tests; just pass a
# db session explicitly.

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from availability.events.models import AvailabilityResponseDB, EventDB
from availability.groups.models import GroupDB, GroupMemberDB
from availability.users.models import ProfileUpdate, UserCounts, UserDB


async def get_user(user_id: UUID, db: AsyncSession) -> UserDB | None:
    result = await db.execute(select(UserDB).where(UserDB.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(email: str, db: AsyncSession) -> UserDB | None:
    """Look up a user by email. Returns None if not found."""
    result = await db.execute(select(UserDB).where(UserDB.email == email))
    return result.scalar_one_or_none()


async def get_users_by_ids(user_ids: set[UUID], db: AsyncSession) -> dict[UUID, UserDB]:
    if not user_ids:
        return {}
    result = await db.execute(select(UserDB).where(UserDB.id.in_(user_ids)))
    return {user.id: user for user in result.scalars().all()}


async def get_user_counts(user_id: UUID, db: AsyncSession) -> UserCounts:
    """Count what a user owns, belongs to, created and answered."""
    owned = await db.execute(
        select(func.count()).select_from(GroupDB).where(GroupDB.owner_id == user_id)
    )
    memberships = await db.execute(
        select(func.count())
        .select_from(GroupMemberDB)
        .where(GroupMemberDB.user_id == user_id)
    )
    created = await db.execute(
        select(func.count()).select_from(EventDB).where(EventDB.creator_id == user_id)
    )
    responses = await db.execute(
        select(func.count())
        .select_from(AvailabilityResponseDB)
        .where(AvailabilityResponseDB.user_id == user_id)
    )
    return UserCounts(
        owned_groups=owned.scalar_one(),
        memberships=memberships.scalar_one(),
        created_events=created.scalar_one(),
        responses=responses.scalar_one(),
    )


async def update_profile(user: UserDB, data: ProfileUpdate, db: AsyncSession) -> UserDB:
    user.name = data.name
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
