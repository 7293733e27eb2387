from uuid import UUID

from fastapi import APIRouter, Depends

from availability.auth.dependencies import get_current_user
from availability.groups.models import (
    GroupCreate,
    GroupDetail,
    GroupRead,
    GroupUpdate,
    MemberRead,
    MemberRoleUpdate,
    MessageResponse,
)
from availability.groups.service import GroupService, get_group_service
from availability.users.models import UserDB

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("/", response_model=list[GroupRead])
async def list_groups(
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> list[GroupRead]:
    """Groups the current user owns or belongs to, most recently updated first."""
    return await service.list_groups(current_user)


@router.post("/", response_model=GroupRead, status_code=201)
async def create_group(
    data: GroupCreate,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> GroupRead:
    return await service.create_group(current_user, data)


@router.get("/{group_id}", response_model=GroupDetail)
async def get_group(
    group_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> GroupDetail:
    return await service.get_group(group_id, current_user)


@router.put("/{group_id}", response_model=GroupRead)
async def update_group(
    group_id: UUID,
    data: GroupUpdate,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> GroupRead:
    return await service.update_group(group_id, current_user, data)


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> MessageResponse:
    """Delete a group with its events, responses, invites and memberships. Owner only."""
    return await service.delete_group(group_id, current_user)


@router.delete("/{group_id}/leave", response_model=MessageResponse)
async def leave_group(
    group_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> MessageResponse:
    return await service.leave_group(group_id, current_user)


@router.patch("/{group_id}/members/{user_id}", response_model=MemberRead)
async def update_member_role(
    group_id: UUID,
    user_id: UUID,
    data: MemberRoleUpdate,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> MemberRead:
    return await service.update_member_role(group_id, current_user, user_id, data)


@router.delete("/{group_id}/members/{user_id}", response_model=MessageResponse)
async def remove_member(
    group_id: UUID,
    user_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
) -> MessageResponse:
    return await service.remove_member(group_id, current_user, user_id)
