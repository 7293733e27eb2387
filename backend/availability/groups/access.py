"""Who may do what inside a group.

The group owner is tracked on ``GroupDB.owner_id`` and never has a row in
``group_members``, so ownership and membership are combined here into a single
set of relations for the caller. Routes and services ask ``can()`` instead of
repeating owner/admin/member conditionals.
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from availability.groups.models import GroupDB, GroupMemberDB, GroupRole


class Relation(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"
    creator = "creator"


class Action(str, Enum):
    group_read = "group.read"
    group_update = "group.update"
    group_delete = "group.delete"
    group_manage_members = "group.manage_members"
    event_list = "event.list"
    event_create = "event.create"
    event_read = "event.read"
    event_update = "event.update"
    event_delete = "event.delete"
    response_list = "response.list"
    response_submit = "response.submit"
    invite_create = "invite.create"
    invite_list = "invite.list"


_ANY_MEMBER = frozenset({Relation.owner, Relation.admin, Relation.member})
_ADMINS = frozenset({Relation.owner, Relation.admin})

# Event edits are limited to the creator and the group owner; group admins are
# not included even though they may send invites.
CAPABILITIES: dict[Action, frozenset[Relation]] = {
    Action.group_read: _ANY_MEMBER,
    Action.group_update: _ADMINS,
    Action.group_delete: frozenset({Relation.owner}),
    Action.group_manage_members: _ADMINS,
    Action.event_list: _ANY_MEMBER,
    Action.event_create: _ANY_MEMBER,
    Action.event_read: _ANY_MEMBER,
    Action.event_update: frozenset({Relation.owner, Relation.creator}),
    Action.event_delete: frozenset({Relation.owner, Relation.creator}),
    Action.response_list: _ANY_MEMBER,
    Action.response_submit: _ANY_MEMBER,
    Action.invite_create: _ADMINS,
    Action.invite_list: _ADMINS,
}


def is_owner(group: GroupDB, user_id: UUID) -> bool:
    return group.owner_id == user_id


def is_member(group: GroupDB, membership: GroupMemberDB | None, user_id: UUID) -> bool:
    return membership is not None or is_owner(group, user_id)


def is_admin(group: GroupDB, membership: GroupMemberDB | None, user_id: UUID) -> bool:
    if is_owner(group, user_id):
        return True
    return membership is not None and membership.role in (GroupRole.owner, GroupRole.admin)


@dataclass
class GroupAccess:
    """The relations one user holds to one group (and optionally one event)."""

    group: GroupDB
    user_id: UUID
    membership: GroupMemberDB | None = None
    relations: frozenset[Relation] = field(default_factory=frozenset)

    @classmethod
    def resolve(
        cls,
        group: GroupDB,
        membership: GroupMemberDB | None,
        user_id: UUID,
        event_creator_id: UUID | None = None,
    ) -> "GroupAccess":
        relations: set[Relation] = set()
        if is_owner(group, user_id):
            relations.add(Relation.owner)
        if is_admin(group, membership, user_id):
            relations.add(Relation.admin)
        if is_member(group, membership, user_id):
            relations.add(Relation.member)
        if event_creator_id is not None and event_creator_id == user_id:
            relations.add(Relation.creator)
        return cls(
            group=group,
            user_id=user_id,
            membership=membership,
            relations=frozenset(relations),
        )

    @property
    def is_owner(self) -> bool:
        return Relation.owner in self.relations

    @property
    def is_admin(self) -> bool:
        return Relation.admin in self.relations

    @property
    def is_member(self) -> bool:
        return Relation.member in self.relations

    def can(self, action: Action) -> bool:
        return can(action, self.relations)


def can(action: Action, relations: frozenset[Relation] | set[Relation]) -> bool:
    """Return True when any of *relations* is allowed to perform *action*."""
    return bool(CAPABILITIES[action] & set(relations))
