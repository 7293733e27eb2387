import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from availability.auth.settings import auth_settings
from availability.events.models import as_utc
from availability.groups.access import Action, GroupAccess, is_member
from availability.groups.models import GroupMemberDB, GroupRole
from availability.groups.repository import GroupRepository
from availability.invites.email import EmailDeliveryError, send_invite_email
from availability.invites.models import InviteDB, InviteStatus
from availability.invites.schemas import (
    InviteAction,
    InviteDetail,
    InviteGroup,
    InviteProcessResult,
    InviteRead,
    InviteSender,
)
from availability.settings import app_settings
from availability.users.models import UserDB
from availability.users.service import get_user, get_user_by_email
from availability.utils.timer import RequestTimer

logger = logging.getLogger(__name__)

NO_GROUP_ACCESS = "Group not found or insufficient permissions"


def generate_token() -> str:
    """64 lowercase hex characters from 32 random bytes."""
    return secrets.token_hex(32)


def build_invite_url(token: str) -> str:
    return f"{auth_settings.FRONTEND_URL}/invite/{token}"


def invite_to_read(
    invite: InviteDB, sender: UserDB | None = None, include_url: bool = False
) -> InviteRead:
    return InviteRead(
        id=invite.id,
        email=invite.email,
        status=InviteStatus(invite.status).value,
        invite_url=build_invite_url(invite.token) if include_url else None,
        group_id=invite.group_id,
        sender=InviteSender(id=sender.id, name=sender.name, email=sender.email)
        if sender
        else None,
        expires_at=invite.expires_at,
        created_at=invite.created_at,
    )


async def get_invite_by_token(token: str, db: AsyncSession) -> InviteDB | None:
    result = await db.execute(select(InviteDB).where(InviteDB.token == token))
    return result.scalar_one_or_none()


async def get_pending_invite(email: str, group_id: UUID, db: AsyncSession) -> InviteDB | None:
    """Find a pending, non-expired invite for this email and group."""
    result = await db.execute(
        select(InviteDB).where(
            InviteDB.email == email,
            InviteDB.group_id == group_id,
            InviteDB.status == InviteStatus.pending,
            InviteDB.expires_at > datetime.now(timezone.utc),
        )
    )
    return result.scalars().first()


async def count_pending_invites_for_email(email: str, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(InviteDB)
        .where(
            InviteDB.email == email.lower(),
            InviteDB.status == InviteStatus.pending,
            InviteDB.expires_at > datetime.now(timezone.utc),
        )
    )
    return result.scalar_one()


async def validate_invite(token: str, db: AsyncSession) -> InviteDB:
    """Return the invite if it can still be acted on, else raise.

    A pending invite found past its expiry is flipped to EXPIRED and
    committed before the error is raised, so later reads take the
    non-pending branch and never write again.
    """
    invite = await get_invite_by_token(token, db)
    if invite is None:
        raise HTTPException(status_code=404, detail="Invitation not found")

    current = InviteStatus(invite.status)
    if current == InviteStatus.expired:
        raise HTTPException(status_code=400, detail="Invitation has expired")
    if current != InviteStatus.pending:
        raise HTTPException(
            status_code=400,
            detail=f"Invitation has already been processed (status: {current.value})",
        )

    if as_utc(invite.expires_at) < datetime.now(timezone.utc):
        invite.status = InviteStatus.expired
        db.add(invite)
        await db.commit()
        logger.info("Invite %s expired on read", invite.id)
        raise HTTPException(status_code=400, detail="Invitation has expired")

    return invite


async def get_invite_detail(token: str, db: AsyncSession) -> InviteDetail:
    invite = await validate_invite(token, db)
    group = await GroupRepository(db).get(invite.group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Invitation not found")
    sender = await get_user(invite.sender_id, db)

    return InviteDetail(
        id=invite.id,
        email=invite.email,
        group=InviteGroup(id=group.id, name=group.name, description=group.description),
        sender=InviteSender(
            id=sender.id if sender else None,
            name=sender.name if sender else None,
            email=sender.email if sender else "",
        ),
        created_at=invite.created_at,
        expires_at=invite.expires_at,
    )


async def create_invite(
    group_id: UUID,
    email: str,
    sender: UserDB,
    db: AsyncSession,
) -> InviteDB:
    """Persist an invite and email its link.

    If the email cannot be delivered the invite row is deleted again so
    the address can be re-invited right away.
    """
    timer = RequestTimer("create_invite")
    repository = GroupRepository(db)

    group = await repository.get(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=NO_GROUP_ACCESS)
    membership = await repository.get_membership(group_id, sender.id)
    if not GroupAccess.resolve(group, membership, sender.id).can(Action.invite_create):
        raise HTTPException(status_code=404, detail=NO_GROUP_ACCESS)

    invited_user = await get_user_by_email(email, db)
    if invited_user is not None:
        invited_membership = await repository.get_membership(group_id, invited_user.id)
        if is_member(group, invited_membership, invited_user.id):
            raise HTTPException(
                status_code=400, detail="User is already a member of this group"
            )

    if await get_pending_invite(email, group_id, db) is not None:
        raise HTTPException(
            status_code=400,
            detail="An invitation has already been sent to this email address",
        )

    invite = InviteDB(
        email=email,
        token=generate_token(),
        group_id=group_id,
        sender_id=sender.id,
        expires_at=datetime.now(timezone.utc)
        + timedelta(days=app_settings.invite_expiry_days),
    )
    async with timer.aspan("db_write"):
        db.add(invite)
        await db.commit()
        await db.refresh(invite)

    try:
        async with timer.aspan("send_email"):
            await send_invite_email(
                to=email,
                group_name=group.name,
                sender_name=sender.name or sender.email,
                invite_url=build_invite_url(invite.token),
                expiry_days=app_settings.invite_expiry_days,
            )
    except EmailDeliveryError as e:
        logger.warning("Deleting invite %s after email failure: %s", invite.id, e)
        await db.delete(invite)
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send invitation email. Please try again.",
        ) from e
    finally:
        timer.summary()

    logger.info("Invite %s sent to %s for group %s", invite.id, email, group_id)
    return invite


async def get_group_invites(group_id: UUID, db: AsyncSession) -> list[InviteRead]:
    """All invites of a group, newest first, with their sender."""
    result = await db.execute(
        select(InviteDB, UserDB)
        .outerjoin(UserDB, InviteDB.sender_id == UserDB.id)
        .where(InviteDB.group_id == group_id)
        .order_by(InviteDB.created_at.desc())
    )
    return [invite_to_read(invite, sender) for invite, sender in result.all()]


async def list_group_invites(
    group_id: UUID, user: UserDB, db: AsyncSession
) -> list[InviteRead]:
    repository = GroupRepository(db)
    group = await repository.get(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=NO_GROUP_ACCESS)
    membership = await repository.get_membership(group_id, user.id)
    if not GroupAccess.resolve(group, membership, user.id).can(Action.invite_list):
        raise HTTPException(status_code=404, detail=NO_GROUP_ACCESS)
    return await get_group_invites(group_id, db)


async def process_invite(
    token: str,
    action: InviteAction,
    user: UserDB,
    db: AsyncSession,
) -> InviteProcessResult:
    """Accept or decline an invite on behalf of the signed-in user.

    Accepting writes the membership row and the ACCEPTED status in one
    commit.
    """
    invite = await validate_invite(token, db)

    if user.email != invite.email:
        raise HTTPException(
            status_code=403,
            detail="This invitation was sent to a different email address",
        )

    repository = GroupRepository(db)
    group = await repository.get(invite.group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")

    outcome = InviteStatus.accepted if action == InviteAction.accept else InviteStatus.declined
    membership = await repository.get_membership(group.id, user.id)

    if is_member(group, membership, user.id):
        invite.status = outcome
        db.add(invite)
        await db.commit()
        return InviteProcessResult(
            message="You are already a member of this group",
            group_id=group.id,
            group_name=group.name,
            already_member=True,
        )

    if action == InviteAction.accept:
        db.add(GroupMemberDB(group_id=group.id, user_id=user.id, role=GroupRole.member))
        invite.status = InviteStatus.accepted
        db.add(invite)
        await db.commit()
        logger.info("User %s joined group %s through invite %s", user.id, group.id, invite.id)
        return InviteProcessResult(
            message="Invitation accepted successfully",
            group_id=group.id,
            group_name=group.name,
        )

    invite.status = InviteStatus.declined
    db.add(invite)
    await db.commit()
    logger.info("Invite %s declined", invite.id)
    return InviteProcessResult(message="Invitation declined")


async def expire_stale_invites(db: AsyncSession) -> int:
    """Flip every pending invite past its expiry to EXPIRED. Returns the count."""
    result = await db.execute(
        update(InviteDB)
        .where(
            InviteDB.status == InviteStatus.pending,
            InviteDB.expires_at < datetime.now(timezone.utc),
        )
        .values(status=InviteStatus.expired)
    )
    await db.commit()
    logger.info("Expired %d stale invites", result.rowcount)
    return result.rowcount
