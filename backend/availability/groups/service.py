import logging
from collections import defaultdict
from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from availability.database import get_db
from availability.events.service import EventService
from availability.groups.access import Action, GroupAccess
from availability.groups.models import (
    GroupCounts,
    GroupCreate,
    GroupDB,
    GroupDetail,
    GroupRead,
    GroupUpdate,
    MemberRead,
    MemberRoleUpdate,
    MembershipStats,
    MessageResponse,
)
from availability.groups.repository import GroupRepository
from availability.invites.service import get_group_invites
from availability.users.models import UserDB, UserSummary
from availability.users.service import get_users_by_ids

logger = logging.getLogger(__name__)

NO_GROUP_ACCESS = "Group not found or insufficient permissions"


def member_to_read(membership, user: UserDB) -> MemberRead:
    return MemberRead(
        group_id=membership.group_id,
        user_id=membership.user_id,
        role=membership.role,
        joined_at=membership.joined_at,
        user=UserSummary.model_validate(user),
    )


class GroupService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = GroupRepository(db)

    async def get_access(self, group_id: UUID, user_id: UUID) -> GroupAccess | None:
        """Resolve the caller's relations to a group, or None if it does not exist."""
        group = await self.repository.get(group_id)
        if group is None:
            return None
        membership = await self.repository.get_membership(group_id, user_id)
        return GroupAccess.resolve(group, membership, user_id)

    async def _require(self, group_id: UUID, user_id: UUID, action: Action) -> GroupAccess:
        access = await self.get_access(group_id, user_id)
        if access is None or not access.can(action):
            raise HTTPException(status_code=404, detail=NO_GROUP_ACCESS)
        return access

    async def _build_reads(self, groups: list[GroupDB]) -> list[GroupRead]:
        group_ids = [group.id for group in groups]
        member_rows = await self.repository.list_members(group_ids)
        event_counts = await self.repository.count_events(group_ids)
        owners = await get_users_by_ids({group.owner_id for group in groups}, self.db)

        members: dict[UUID, list[MemberRead]] = defaultdict(list)
        for membership, user in member_rows:
            members[membership.group_id].append(member_to_read(membership, user))

        reads = []
        for group in groups:
            owner = owners.get(group.owner_id)
            reads.append(
                GroupRead(
                    **group.model_dump(),
                    owner=UserSummary.model_validate(owner) if owner else None,
                    members=members.get(group.id, []),
                    counts=GroupCounts(
                        members=len(members.get(group.id, [])),
                        events=event_counts.get(group.id, 0),
                    ),
                )
            )
        return reads

    async def list_groups(self, user: UserDB) -> list[GroupRead]:
        groups = await self.repository.list_for_user(user.id)
        if not groups:
            return []
        return await self._build_reads(groups)

    async def create_group(self, user: UserDB, data: GroupCreate) -> GroupRead:
        group = await self.repository.create(user.id, data)
        logger.info("Group %s created by %s", group.id, user.id)
        reads = await self._build_reads([group])
        return reads[0]

    async def get_group(self, group_id: UUID, user: UserDB) -> GroupDetail:
        access = await self.get_access(group_id, user.id)
        if access is None or not access.can(Action.group_read):
            raise HTTPException(status_code=404, detail="Group not found")
        group = access.group

        [read] = await self._build_reads([group])
        events_service = EventService(self.db)
        events = await events_service.build_event_reads(
            await events_service.repository.list_for_group(group.id), group, user.id
        )
        invites = await get_group_invites(group.id, self.db)
        current = next((m for m in read.members if m.user_id == user.id), None)

        return GroupDetail(
            **read.model_dump(exclude={"counts"}),
            counts=GroupCounts(
                members=read.counts.members,
                events=len(events),
                invites=len(invites),
            ),
            events=events,
            invites=invites,
            is_owner=access.is_owner,
            is_member=access.is_member,
            total_members=read.counts.members + 1,
            current_user_membership=current,
            membership_stats=await self.membership_stats(group.id),
        )

    async def update_group(self, group_id: UUID, user: UserDB, data: GroupUpdate) -> GroupRead:
        access = await self._require(group_id, user.id, Action.group_update)
        group = await self.repository.update(access.group, data.model_dump(exclude_unset=True))
        reads = await self._build_reads([group])
        return reads[0]

    async def delete_group(self, group_id: UUID, user: UserDB) -> MessageResponse:
        access = await self.get_access(group_id, user.id)
        if access is None:
            raise HTTPException(status_code=404, detail="Group not found")
        if not access.can(Action.group_delete):
            raise HTTPException(
                status_code=403, detail="Only the group owner can delete the group"
            )
        await self.repository.delete(access.group)
        logger.info("Group %s deleted by %s", group_id, user.id)
        return MessageResponse(message="Group deleted successfully")

    async def leave_group(self, group_id: UUID, user: UserDB) -> MessageResponse:
        access = await self.get_access(group_id, user.id)
        if access is None:
            raise HTTPException(status_code=404, detail="Group not found")
        if access.is_owner:
            raise HTTPException(
                status_code=400,
                detail="Group owner cannot leave the group. "
                "Transfer ownership or delete the group instead.",
            )
        if access.membership is None:
            raise HTTPException(status_code=400, detail="You are not a member of this group")
        await self.repository.remove_member(access.membership)
        return MessageResponse(message="Left group successfully")

    async def update_member_role(
        self, group_id: UUID, user: UserDB, member_id: UUID, data: MemberRoleUpdate
    ) -> MemberRead:
        access = await self._require(group_id, user.id, Action.group_manage_members)
        if member_id == access.group.owner_id:
            raise HTTPException(status_code=400, detail="Cannot change owner role")
        membership = await self.repository.get_membership(group_id, member_id)
        if membership is None:
            raise HTTPException(status_code=404, detail="Membership not found")

        membership = await self.repository.update_member_role(membership, data.role)
        members = await get_users_by_ids({member_id}, self.db)
        return member_to_read(membership, members[member_id])

    async def remove_member(self, group_id: UUID, user: UserDB, member_id: UUID) -> MessageResponse:
        access = await self._require(group_id, user.id, Action.group_manage_members)
        if member_id == access.group.owner_id:
            raise HTTPException(status_code=400, detail="Cannot remove group owner")
        membership = await self.repository.get_membership(group_id, member_id)
        if membership is None:
            raise HTTPException(status_code=404, detail="User is not a member of this group")

        await self.repository.remove_member(membership)
        logger.info("User %s removed from group %s by %s", member_id, group_id, user.id)
        return MessageResponse(message="Member removed successfully")

    async def transfer_ownership(
        self, group_id: UUID, user: UserDB, new_owner_id: UUID
    ) -> GroupRead:
        """Hand the group to an existing member; the previous owner stays on as ADMIN."""
        access = await self.get_access(group_id, user.id)
        if access is None:
            raise HTTPException(status_code=404, detail="Group not found")
        if not access.is_owner:
            raise HTTPException(
                status_code=403, detail="Only the current owner can transfer ownership"
            )
        new_owner_membership = await self.repository.get_membership(group_id, new_owner_id)
        if new_owner_membership is None:
            raise HTTPException(
                status_code=400, detail="New owner must be a member of the group"
            )

        group = await self.repository.transfer_ownership(access.group, new_owner_membership)
        logger.info("Group %s transferred from %s to %s", group_id, user.id, new_owner_id)
        reads = await self._build_reads([group])
        return reads[0]

    async def membership_stats(self, group_id: UUID) -> MembershipStats:
        distribution = await self.repository.role_distribution(group_id)
        member_count = sum(distribution.values())
        return MembershipStats(
            total_members=member_count + 1,
            member_count=member_count,
            role_distribution=distribution,
        )


def get_group_service(db: AsyncSession = Depends(get_db)) -> GroupService:
    return GroupService(db)
