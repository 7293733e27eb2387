from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from fastapi.testclient import TestClient

from availability.users.models import UserCounts


def test_dashboard_summary(client: TestClient, mock_db, current_user):
    counts = UserCounts(owned_groups=2, memberships=3, created_events=4, responses=5)
    groups = MagicMock()
    groups.list_member_ids = AsyncMock(return_value=[uuid4(), uuid4()])
    events = MagicMock()
    events.count_upcoming = AsyncMock(return_value=6)

    with patch("availability.dashboard.service.get_user_counts", AsyncMock(return_value=counts)), \
         patch("availability.dashboard.service.GroupRepository", return_value=groups), \
         patch("availability.dashboard.service.EventRepository", return_value=events), \
         patch("availability.dashboard.service.count_pending_invites_for_email",
               AsyncMock(return_value=1)) as pending:
        response = client.get("/dashboard")

    assert response.status_code == 200
    assert response.json() == {
        "total_groups": 5,
        "upcoming_events": 6,
        "pending_invites": 1,
        "created_events": 4,
        "responses": 5,
    }
    assert pending.call_args[0][0] == current_user.email


def test_dashboard_requires_authentication(client: TestClient):
    response = client.get("/dashboard")
    assert response.status_code == 401
