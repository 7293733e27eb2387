from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from availability.auth.dependencies import get_current_user
from availability.dashboard.models import DashboardSummary
from availability.dashboard.service import get_dashboard_summary
from availability.database import get_db
from availability.users.models import UserDB

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardSummary)
async def get_dashboard(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DashboardSummary:
    return await get_dashboard_summary(current_user, db)
