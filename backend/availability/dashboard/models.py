from pydantic import BaseModel


class DashboardSummary(BaseModel):
    total_groups: int
    upcoming_events: int
    pending_invites: int
    created_events: int
    responses: int
