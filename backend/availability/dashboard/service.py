from sqlalchemy.ext.asyncio import AsyncSession

from availability.dashboard.models import DashboardSummary
from availability.events.repository import EventRepository
from availability.groups.repository import GroupRepository
from availability.invites.service import count_pending_invites_for_email
from availability.users.models import UserDB
from availability.users.service import get_user_counts


async def get_dashboard_summary(user: UserDB, db: AsyncSession) -> DashboardSummary:
    """Headline numbers for the signed-in user's home page.

    Upcoming events are counted across every group the user owns or
    belongs to; pending invites are the non-expired ones addressed to
    the user's email.
    """
    counts = await get_user_counts(user.id, db)
    group_ids = await GroupRepository(db).list_member_ids(user.id)

    return DashboardSummary(
        total_groups=counts.owned_groups + counts.memberships,
        upcoming_events=await EventRepository(db).count_upcoming(group_ids),
        pending_invites=await count_pending_invites_for_email(user.email, db),
        created_events=counts.created_events,
        responses=counts.responses,
    )
