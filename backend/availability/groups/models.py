from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import field_validator
from sqlalchemy.sql import func
from sqlmodel import Column, DateTime, Field, SQLModel, String, Text

from availability.events.models import EventRead
from availability.invites.schemas import InviteRead
from availability.users.models import UserSummary


class GroupRole(str, Enum):
    owner = "OWNER"
    admin = "ADMIN"
    member = "MEMBER"


class GroupBase(SQLModel):
    name: str = Field(max_length=100, nullable=False)
    description: str | None = Field(
        default=None, sa_column=Column(String(500), nullable=True))


class GroupDB(GroupBase, table=True):
    __tablename__ = "groups"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    created_at: datetime = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
    updated_at: datetime = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        ),
    )


class GroupMemberDB(SQLModel, table=True):
    __tablename__ = "group_members"

    group_id: UUID = Field(
        foreign_key="groups.id", primary_key=True, ondelete="CASCADE")
    user_id: UUID = Field(
        foreign_key="users.id", primary_key=True, ondelete="CASCADE")
    role: GroupRole = Field(default=GroupRole.member, nullable=False)
    joined_at: datetime = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )


def _clean_name(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Group name is required")
    return value


def _clean_description(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class GroupCreate(SQLModel):
    name: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str | None) -> str | None:
        return _clean_description(value)


class GroupUpdate(SQLModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str | None) -> str | None:
        return _clean_description(value)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str | None) -> str | None:
        # An explicit null name is as invalid as a blank one
        if value is None:
            raise ValueError("Group name is required")
        return _clean_name(value)


class MemberRoleUpdate(SQLModel):
    role: GroupRole

    @field_validator("role")
    @classmethod
    def role_assignable(cls, value: GroupRole) -> GroupRole:
        if value == GroupRole.owner:
            raise ValueError("Role must be ADMIN or MEMBER")
        return value


class MemberRead(SQLModel):
    group_id: UUID
    user_id: UUID
    role: GroupRole
    joined_at: datetime
    user: UserSummary


class GroupCounts(SQLModel):
    members: int = 0
    events: int = 0
    invites: int | None = None


class GroupRead(GroupBase):
    id: UUID
    owner_id: UUID
    created_at: datetime
    updated_at: datetime
    owner: UserSummary | None = None
    members: list[MemberRead] = []
    counts: GroupCounts = GroupCounts()


class MembershipStats(SQLModel):
    total_members: int
    member_count: int
    role_distribution: dict[str, int]


class MessageResponse(SQLModel):
    message: str


class GroupDetail(GroupRead):
    events: list[EventRead] = []
    invites: list[InviteRead] = []
    is_owner: bool
    is_member: bool
    total_members: int
    current_user_membership: MemberRead | None = None
    membership_stats: MembershipStats | None = None
