from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from availability.auth.dependencies import get_current_user
from availability.database import get_db
from availability.invites.schemas import (
    InviteCreate,
    InviteCreated,
    InviteDetail,
    InviteProcess,
    InviteProcessResult,
    InviteRead,
)
from availability.invites.service import (
    create_invite,
    get_invite_detail,
    invite_to_read,
    list_group_invites,
    process_invite,
)
from availability.users.models import UserDB

router = APIRouter(tags=["invites"])


@router.get("/groups/{group_id}/invites", response_model=list[InviteRead])
async def get_group_invites_endpoint(
    group_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[InviteRead]:
    """List a group's invites. Owner or admin only."""
    return await list_group_invites(group_id, current_user, db)


@router.post("/groups/{group_id}/invites", response_model=InviteCreated, status_code=201)
async def create_invite_endpoint(
    group_id: UUID,
    data: InviteCreate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> InviteCreated:
    invite = await create_invite(group_id, data.email, current_user, db)
    return InviteCreated(
        message="Invitation sent successfully",
        invite=invite_to_read(invite, current_user, include_url=True),
    )


@router.get("/invites/{token}", response_model=InviteDetail)
async def get_invite_endpoint(
    token: str,
    db: AsyncSession = Depends(get_db),
) -> InviteDetail:
    """Public: the invitee may not be signed in yet."""
    return await get_invite_detail(token, db)


@router.post("/invites/{token}", response_model=InviteProcessResult)
async def process_invite_endpoint(
    token: str,
    data: InviteProcess,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> InviteProcessResult:
    """Accept or decline an invite addressed to the current user."""
    return await process_invite(token, data.action, current_user, db)
