from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError

from availability.events.models import (
    AvailabilityResponseDB,
    EventDB,
    EventUpdate,
    ResponseStatus,
    ResponseWrite,
)
from availability.events.repository import EventRepository
from availability.events.service import EventService
from availability.groups.models import GroupDB, GroupMemberDB, GroupRole
from availability.users.models import UserDB


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def mock_groups():
    repo = MagicMock()
    repo.get = AsyncMock()
    repo.get_membership = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_events():
    repo = MagicMock()
    repo.get = AsyncMock()
    repo.list_for_group = AsyncMock(return_value=[])
    repo.list_responses = AsyncMock(return_value=[])
    repo.create = AsyncMock()
    repo.update = AsyncMock()
    repo.delete = AsyncMock()
    repo.upsert_response = AsyncMock()
    return repo


@pytest.fixture
def service(mock_db, mock_groups, mock_events):
    svc = EventService(mock_db)
    svc.groups = mock_groups
    svc.repository = mock_events
    return svc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_user(**kwargs):
    defaults = dict(
        id=uuid4(),
        name="Alice",
        email="alice@example.com",
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    return UserDB(**{**defaults, **kwargs})


def make_group(owner_id, **kwargs):
    defaults = dict(
        id=uuid4(),
        name="Book Club",
        owner_id=owner_id,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    return GroupDB(**{**defaults, **kwargs})


def make_event(group, creator_id, **kwargs):
    now = datetime.now(timezone.utc)
    defaults = dict(
        id=uuid4(),
        title="Picnic",
        description=None,
        start_time=now + timedelta(days=1),
        end_time=now + timedelta(days=1, hours=2),
        group_id=group.id,
        creator_id=creator_id,
        created_at=now,
        updated_at=now,
    )
    return EventDB(**{**defaults, **kwargs})


def make_response(event, user, status=ResponseStatus.available, **kwargs):
    now = datetime.now(timezone.utc)
    defaults = dict(
        id=uuid4(),
        event_id=event.id,
        user_id=user.id,
        status=status,
        comment=None,
        created_at=now,
        updated_at=now,
    )
    return AvailabilityResponseDB(**{**defaults, **kwargs})


# ---------------------------------------------------------------------------
# EventRepository.upsert_response
# ---------------------------------------------------------------------------

async def test_upsert_creates_first_response(mock_db):
    repo = EventRepository(mock_db)
    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = None
    mock_db.execute.return_value = mock_result
    event_id, user_id = uuid4(), uuid4()

    response = await repo.upsert_response(
        event_id, user_id, ResponseWrite(status=ResponseStatus.maybe, comment=" if I can "))

    mock_db.add.assert_called_once_with(response)
    assert response.event_id == event_id
    assert response.status == ResponseStatus.maybe
    assert response.comment == "if I can"


async def test_upsert_overwrites_existing_response(mock_db):
    repo = EventRepository(mock_db)
    event_id, user_id = uuid4(), uuid4()
    earlier = datetime.now(timezone.utc) - timedelta(hours=1)
    existing = AvailabilityResponseDB(
        id=uuid4(), event_id=event_id, user_id=user_id,
        status=ResponseStatus.available, comment="yes", updated_at=earlier,
    )
    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = existing
    mock_db.execute.return_value = mock_result

    response = await repo.upsert_response(
        event_id, user_id, ResponseWrite(status=ResponseStatus.unavailable))

    assert response is existing
    assert existing.status == ResponseStatus.unavailable
    assert existing.comment is None
    assert existing.updated_at > earlier
    mock_db.commit.assert_awaited_once()


async def test_upsert_same_values_still_bumps_updated_at(mock_db):
    repo = EventRepository(mock_db)
    earlier = datetime.now(timezone.utc) - timedelta(minutes=5)
    existing = AvailabilityResponseDB(
        id=uuid4(), event_id=uuid4(), user_id=uuid4(),
        status=ResponseStatus.available, comment=None, updated_at=earlier,
    )
    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = existing
    mock_db.execute.return_value = mock_result

    await repo.upsert_response(
        existing.event_id, existing.user_id, ResponseWrite(status=ResponseStatus.available))

    assert existing.updated_at > earlier


# ---------------------------------------------------------------------------
# list / create
# ---------------------------------------------------------------------------

async def test_list_events_non_member_gets_404(service, mock_groups):
    group = make_group(uuid4())
    mock_groups.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.list_group_events(group.id, make_user())
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Group not found or insufficient permissions"


async def test_build_event_reads_counts_and_own_response(service, mock_events, mock_db):
    alice = make_user()
    bob = make_user(name="Bob", email="bob@example.com")
    group = make_group(alice.id)
    event = make_event(group, alice.id)
    mock_events.list_responses.return_value = [
        (make_response(event, bob, ResponseStatus.maybe), bob),
        (make_response(event, alice, ResponseStatus.available), alice),
    ]

    with patch("availability.events.service.get_users_by_ids",
               AsyncMock(return_value={alice.id: alice})):
        [read] = await service.build_event_reads([event], group, bob.id)

    assert read.response_count.total == 2
    assert read.response_count.maybe == 1
    assert read.user_response.status == ResponseStatus.maybe
    assert read.creator.email == "alice@example.com"
    assert read.group.name == "Book Club"
    assert read.responses == []


# ---------------------------------------------------------------------------
# get / update / delete
# ---------------------------------------------------------------------------

async def test_get_event_missing_is_404(service, mock_events):
    mock_events.get.return_value = None

    with pytest.raises(HTTPException) as exc_info:
        await service.get_event(uuid4(), make_user())
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Event not found"


async def test_get_event_non_member_is_403(service, mock_events, mock_groups):
    group = make_group(uuid4())
    mock_events.get.return_value = make_event(group, group.owner_id)
    mock_groups.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.get_event(uuid4(), make_user())
    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "Access denied"


async def test_admin_cannot_update_someone_elses_event(service, mock_events, mock_groups):
    owner, creator, admin = make_user(), make_user(), make_user()
    group = make_group(owner.id)
    mock_events.get.return_value = make_event(group, creator.id)
    mock_groups.get.return_value = group
    mock_groups.get_membership.return_value = GroupMemberDB(
        group_id=group.id, user_id=admin.id, role=GroupRole.admin)

    with pytest.raises(HTTPException) as exc_info:
        await service.update_event(uuid4(), admin, EventUpdate(title="Mine now"))
    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "Permission denied"
    mock_events.update.assert_not_called()


async def test_update_checks_merged_schedule(service, mock_events, mock_groups):
    alice = make_user()
    group = make_group(alice.id)
    event = make_event(group, alice.id)
    mock_events.get.return_value = event
    mock_groups.get.return_value = group

    # Only the start moves, past the stored end
    with pytest.raises(RequestValidationError) as exc_info:
        await service.update_event(
            event.id, alice, EventUpdate(start_time=event.end_time + timedelta(hours=1)))
    assert exc_info.value.errors()[0]["loc"] == ("body", "end_time")
    mock_events.update.assert_not_called()


async def test_creator_can_move_event_into_the_past(service, mock_events, mock_groups):
    alice, creator = make_user(), make_user()
    group = make_group(alice.id)
    event = make_event(group, creator.id)
    mock_events.get.return_value = event
    mock_groups.get.return_value = group
    mock_groups.get_membership.return_value = GroupMemberDB(
        group_id=group.id, user_id=creator.id, role=GroupRole.member)
    past = datetime.now(timezone.utc) - timedelta(days=2)
    mock_events.update.return_value = make_event(
        group, creator.id, id=event.id, start_time=past, end_time=past + timedelta(hours=1))

    with patch("availability.events.service.get_users_by_ids",
               AsyncMock(return_value={})):
        result = await service.update_event(
            event.id, creator,
            EventUpdate(start_time=past, end_time=past + timedelta(hours=1)))

    assert result.message == "Event updated successfully"
    assert result.event.start_time == past
    assert set(mock_events.update.call_args[0][1]) == {"start_time", "end_time"}


async def test_description_edit_on_past_event_is_accepted(service, mock_events, mock_groups):
    alice, creator = make_user(), make_user()
    group = make_group(alice.id)
    past = datetime.now(timezone.utc) - timedelta(days=2)
    event = make_event(group, creator.id, start_time=past, end_time=past + timedelta(hours=1))
    mock_events.get.return_value = event
    mock_groups.get.return_value = group
    mock_groups.get_membership.return_value = GroupMemberDB(
        group_id=group.id, user_id=creator.id, role=GroupRole.member)
    mock_events.update.return_value = make_event(
        group, creator.id, id=event.id, description="Bring snacks",
        start_time=past, end_time=past + timedelta(hours=1))

    with patch("availability.events.service.get_users_by_ids",
               AsyncMock(return_value={})):
        result = await service.update_event(
            event.id, creator, EventUpdate(description="Bring snacks"))

    assert result.message == "Event updated successfully"
    assert result.event.description == "Bring snacks"
    assert mock_events.update.call_args[0][1] == {"description": "Bring snacks"}


async def test_owner_deletes_any_event(service, mock_events, mock_groups):
    alice = make_user()
    group = make_group(alice.id)
    event = make_event(group, uuid4())
    mock_events.get.return_value = event
    mock_groups.get.return_value = group

    result = await service.delete_event(event.id, alice)

    assert result.message == "Event deleted successfully"
    mock_events.delete.assert_awaited_once_with(event)


# ---------------------------------------------------------------------------
# responses
# ---------------------------------------------------------------------------

async def test_submit_response_non_member_is_403(service, mock_events, mock_groups):
    group = make_group(uuid4())
    mock_events.get.return_value = make_event(group, group.owner_id)
    mock_groups.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.submit_response(
            uuid4(), make_user(), ResponseWrite(status=ResponseStatus.available))
    assert exc_info.value.status_code == 403
    mock_events.upsert_response.assert_not_called()


async def test_submit_response_member(service, mock_events, mock_groups):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice.id)
    event = make_event(group, alice.id)
    mock_events.get.return_value = event
    mock_groups.get.return_value = group
    mock_groups.get_membership.return_value = GroupMemberDB(
        group_id=group.id, user_id=bob.id, role=GroupRole.member)
    mock_events.upsert_response.return_value = make_response(event, bob, ResponseStatus.maybe)

    result = await service.submit_response(
        event.id, bob, ResponseWrite(status=ResponseStatus.maybe))

    assert result.message == "Response saved successfully"
    assert result.response.user.email == "bob@example.com"
