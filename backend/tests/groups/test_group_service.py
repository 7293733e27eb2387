from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException

from availability.groups.models import (
    GroupDB,
    GroupMemberDB,
    GroupRole,
    GroupUpdate,
    MemberRoleUpdate,
)
from availability.groups.service import GroupService
from availability.users.models import UserDB


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def mock_repo():
    repo = MagicMock()
    repo.get = AsyncMock(return_value=None)
    repo.get_membership = AsyncMock(return_value=None)
    repo.list_for_user = AsyncMock(return_value=[])
    repo.list_members = AsyncMock(return_value=[])
    repo.count_events = AsyncMock(return_value={})
    repo.role_distribution = AsyncMock(return_value={})
    repo.update = AsyncMock()
    repo.delete = AsyncMock()
    repo.remove_member = AsyncMock()
    repo.update_member_role = AsyncMock()
    repo.transfer_ownership = AsyncMock()
    return repo


@pytest.fixture
def service(mock_db, mock_repo):
    svc = GroupService(mock_db)
    svc.repository = mock_repo
    return svc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_user(**kwargs):
    defaults = dict(
        id=uuid4(),
        name="Alice",
        email="alice@example.com",
        created_at=datetime.now(),
        updated_at=datetime.now(),
    )
    return UserDB(**{**defaults, **kwargs})


def make_group(owner, **kwargs):
    defaults = dict(
        id=uuid4(),
        name="Book Club",
        description=None,
        owner_id=owner.id,
        created_at=datetime.now(),
        updated_at=datetime.now(),
    )
    return GroupDB(**{**defaults, **kwargs})


def make_membership(group, user, role=GroupRole.member):
    return GroupMemberDB(
        group_id=group.id, user_id=user.id, role=role, joined_at=datetime.now())


# ---------------------------------------------------------------------------
# get_group
# ---------------------------------------------------------------------------

async def test_get_group_missing_returns_404(service):
    with pytest.raises(HTTPException) as exc_info:
        await service.get_group(uuid4(), make_user())
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Group not found"


async def test_get_group_non_member_returns_404(service, mock_repo):
    group = make_group(make_user())
    mock_repo.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.get_group(group.id, make_user(email="eve@example.com"))
    assert exc_info.value.status_code == 404


async def test_get_group_computes_owner_flags(service, mock_repo, mock_db):
    alice = make_user()
    bob = make_user(name="Bob", email="bob@example.com")
    group = make_group(alice)
    mock_repo.get.return_value = group
    mock_repo.list_members.return_value = [(make_membership(group, bob), bob)]
    mock_repo.role_distribution.return_value = {"MEMBER": 1}

    with patch("availability.groups.service.get_users_by_ids",
               AsyncMock(return_value={alice.id: alice})), \
         patch("availability.groups.service.get_group_invites",
               AsyncMock(return_value=[])), \
         patch("availability.groups.service.EventService") as events_cls:
        events = events_cls.return_value
        events.repository.list_for_group = AsyncMock(return_value=[])
        events.build_event_reads = AsyncMock(return_value=[])

        detail = await service.get_group(group.id, alice)

    assert detail.is_owner is True
    assert detail.is_member is True
    assert detail.total_members == 2
    assert detail.current_user_membership is None
    assert detail.owner.email == "alice@example.com"
    assert [m.user_id for m in detail.members] == [bob.id]
    assert detail.membership_stats.total_members == 2


# ---------------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------------

async def test_update_group_plain_member_gets_404(service, mock_repo):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice)
    mock_repo.get.return_value = group
    mock_repo.get_membership.return_value = make_membership(group, bob)

    with pytest.raises(HTTPException) as exc_info:
        await service.update_group(group.id, bob, GroupUpdate(name="Renamed"))
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Group not found or insufficient permissions"
    mock_repo.update.assert_not_called()


async def test_delete_group_admin_gets_403(service, mock_repo):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice)
    mock_repo.get.return_value = group
    mock_repo.get_membership.return_value = make_membership(group, bob, GroupRole.admin)

    with pytest.raises(HTTPException) as exc_info:
        await service.delete_group(group.id, bob)
    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "Only the group owner can delete the group"
    mock_repo.delete.assert_not_called()


async def test_delete_group_owner_succeeds(service, mock_repo):
    alice = make_user()
    group = make_group(alice)
    mock_repo.get.return_value = group

    result = await service.delete_group(group.id, alice)

    assert result.message == "Group deleted successfully"
    mock_repo.delete.assert_awaited_once_with(group)


async def test_former_member_gets_404_after_delete(service, mock_repo):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice)
    mock_repo.get.return_value = group
    await service.delete_group(group.id, alice)

    mock_repo.get.return_value = None
    with pytest.raises(HTTPException) as exc_info:
        await service.get_group(group.id, bob)
    assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# leave
# ---------------------------------------------------------------------------

async def test_owner_cannot_leave(service, mock_repo):
    alice = make_user()
    group = make_group(alice)
    mock_repo.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.leave_group(group.id, alice)
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail.startswith("Group owner cannot leave the group.")


async def test_non_member_cannot_leave(service, mock_repo):
    group = make_group(make_user())
    mock_repo.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.leave_group(group.id, make_user(email="eve@example.com"))
    assert exc_info.value.detail == "You are not a member of this group"


async def test_member_leaves(service, mock_repo):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice)
    membership = make_membership(group, bob)
    mock_repo.get.return_value = group
    mock_repo.get_membership.return_value = membership

    result = await service.leave_group(group.id, bob)

    assert result.message == "Left group successfully"
    mock_repo.remove_member.assert_awaited_once_with(membership)


# ---------------------------------------------------------------------------
# member management
# ---------------------------------------------------------------------------

async def test_cannot_change_owner_role(service, mock_repo):
    alice = make_user()
    group = make_group(alice)
    mock_repo.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.update_member_role(
            group.id, alice, alice.id, MemberRoleUpdate(role=GroupRole.admin))
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Cannot change owner role"


async def test_promote_member_to_admin(service, mock_repo):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice)
    membership = make_membership(group, bob)
    mock_repo.get.return_value = group
    mock_repo.get_membership.side_effect = [None, membership]
    mock_repo.update_member_role.return_value = make_membership(group, bob, GroupRole.admin)

    with patch("availability.groups.service.get_users_by_ids",
               AsyncMock(return_value={bob.id: bob})):
        result = await service.update_member_role(
            group.id, alice, bob.id, MemberRoleUpdate(role=GroupRole.admin))

    assert result.role == GroupRole.admin
    mock_repo.update_member_role.assert_awaited_once_with(membership, GroupRole.admin)


async def test_cannot_remove_owner(service, mock_repo):
    alice = make_user()
    group = make_group(alice)
    mock_repo.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.remove_member(group.id, alice, alice.id)
    assert exc_info.value.detail == "Cannot remove group owner"


async def test_transfer_requires_current_owner(service, mock_repo):
    alice, bob = make_user(), make_user(email="bob@example.com")
    group = make_group(alice)
    mock_repo.get.return_value = group
    mock_repo.get_membership.return_value = make_membership(group, bob, GroupRole.admin)

    with pytest.raises(HTTPException) as exc_info:
        await service.transfer_ownership(group.id, bob, bob.id)
    assert exc_info.value.status_code == 403
    mock_repo.transfer_ownership.assert_not_called()


async def test_transfer_requires_member_target(service, mock_repo):
    alice = make_user()
    group = make_group(alice)
    mock_repo.get.return_value = group

    with pytest.raises(HTTPException) as exc_info:
        await service.transfer_ownership(group.id, alice, uuid4())
    assert exc_info.value.detail == "New owner must be a member of the group"


async def test_membership_stats_adds_owner(service, mock_repo):
    mock_repo.role_distribution.return_value = {"ADMIN": 1, "MEMBER": 2}

    stats = await service.membership_stats(uuid4())

    assert stats.member_count == 3
    assert stats.total_members == 4
    assert stats.role_distribution == {"ADMIN": 1, "MEMBER": 2}
