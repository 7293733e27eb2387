from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, field_validator


class InviteAction(str, Enum):
    accept = "accept"
    decline = "decline"


class InviteCreate(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class InviteProcess(BaseModel):
    action: InviteAction


class InviteSender(BaseModel):
    id: UUID | None = None
    name: str | None
    email: str


class InviteGroup(BaseModel):
    id: UUID
    name: str
    description: str | None


class InviteRead(BaseModel):
    id: UUID
    email: str
    status: str
    invite_url: str | None = None
    group_id: UUID
    sender: InviteSender | None = None
    expires_at: datetime
    created_at: datetime


class InviteCreated(BaseModel):
    message: str
    invite: InviteRead


class InviteDetail(BaseModel):
    """What an invitee sees before deciding: the group and who sent it."""

    id: UUID
    email: str
    group: InviteGroup
    sender: InviteSender
    created_at: datetime
    expires_at: datetime


class InviteProcessResult(BaseModel):
    message: str
    group_id: UUID | None = None
    group_name: str | None = None
    already_member: bool = False
