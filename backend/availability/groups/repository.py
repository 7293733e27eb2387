from uuid import UUID

from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from availability.events.models import AvailabilityResponseDB, EventDB
from availability.groups.models import GroupCreate, GroupDB, GroupMemberDB, GroupRole
from availability.invites.models import InviteDB
from availability.users.models import UserDB


class GroupRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, group_id: UUID) -> GroupDB | None:
        result = await self.db.execute(select(GroupDB).where(GroupDB.id == group_id))
        return result.scalar_one_or_none()

    async def get_membership(self, group_id: UUID, user_id: UUID) -> GroupMemberDB | None:
        result = await self.db.execute(
            select(GroupMemberDB).where(
                GroupMemberDB.group_id == group_id,
                GroupMemberDB.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> list[GroupDB]:
        member_of = select(GroupMemberDB.group_id).where(
            GroupMemberDB.user_id == user_id)
        result = await self.db.execute(
            select(GroupDB)
            .where(or_(GroupDB.owner_id == user_id, GroupDB.id.in_(member_of)))
            .order_by(GroupDB.updated_at.desc())
        )
        return list(result.scalars().all())

    async def list_member_ids(self, user_id: UUID) -> list[UUID]:
        """Ids of every group the user owns or belongs to."""
        member_of = select(GroupMemberDB.group_id).where(
            GroupMemberDB.user_id == user_id)
        result = await self.db.execute(
            select(GroupDB.id).where(
                or_(GroupDB.owner_id == user_id, GroupDB.id.in_(member_of))
            )
        )
        return list(result.scalars().all())

    async def list_members(self, group_ids: list[UUID]) -> list:
        if not group_ids:
            return []
        result = await self.db.execute(
            select(GroupMemberDB, UserDB)
            .join(UserDB, GroupMemberDB.user_id == UserDB.id)
            .where(GroupMemberDB.group_id.in_(group_ids))
            .order_by(GroupMemberDB.joined_at.asc())
        )
        return result.all()

    async def count_events(self, group_ids: list[UUID]) -> dict[UUID, int]:
        if not group_ids:
            return {}
        result = await self.db.execute(
            select(EventDB.group_id, func.count())
            .where(EventDB.group_id.in_(group_ids))
            .group_by(EventDB.group_id)
        )
        return {group_id: count for group_id, count in result.all()}

    async def role_distribution(self, group_id: UUID) -> dict[str, int]:
        result = await self.db.execute(
            select(GroupMemberDB.role, func.count())
            .where(GroupMemberDB.group_id == group_id)
            .group_by(GroupMemberDB.role)
        )
        return {
            role.value if isinstance(role, GroupRole) else str(role): count
            for role, count in result.all()
        }

    async def create(self, owner_id: UUID, data: GroupCreate) -> GroupDB:
        db_group = GroupDB(
            name=data.name,
            description=data.description,
            owner_id=owner_id,
        )
        self.db.add(db_group)
        await self.db.commit()
        await self.db.refresh(db_group)
        return db_group

    async def update(self, group: GroupDB, data: dict) -> GroupDB:
        for key, value in data.items():
            setattr(group, key, value)
        self.db.add(group)
        await self.db.commit()
        await self.db.refresh(group)
        return group

    async def delete(self, group: GroupDB) -> None:
        """Delete a group and everything it owns in one transaction."""
        event_ids = select(EventDB.id).where(EventDB.group_id == group.id)
        await self.db.execute(
            delete(AvailabilityResponseDB).where(
                AvailabilityResponseDB.event_id.in_(event_ids)
            )
        )
        await self.db.execute(delete(EventDB).where(EventDB.group_id == group.id))
        await self.db.execute(delete(InviteDB).where(InviteDB.group_id == group.id))
        await self.db.execute(
            delete(GroupMemberDB).where(GroupMemberDB.group_id == group.id)
        )
        await self.db.delete(group)
        await self.db.commit()

    async def update_member_role(
        self, membership: GroupMemberDB, role: GroupRole
    ) -> GroupMemberDB:
        membership.role = role
        self.db.add(membership)
        await self.db.commit()
        await self.db.refresh(membership)
        return membership

    async def remove_member(self, membership: GroupMemberDB) -> None:
        await self.db.delete(membership)
        await self.db.commit()

    async def transfer_ownership(
        self, group: GroupDB, new_owner_membership: GroupMemberDB
    ) -> GroupDB:
        """Swap owner: the new owner loses their member row, the old owner
        becomes an ADMIN member. All in one commit."""
        previous_owner_id = group.owner_id
        group.owner_id = new_owner_membership.user_id
        self.db.add(group)
        await self.db.delete(new_owner_membership)
        self.db.add(
            GroupMemberDB(
                group_id=group.id,
                user_id=previous_owner_id,
                role=GroupRole.admin,
            )
        )
        await self.db.commit()
        await self.db.refresh(group)
        return group
