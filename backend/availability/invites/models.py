from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy.sql import func
from sqlmodel import Column, DateTime, Field, SQLModel


class InviteStatus(str, Enum):
    pending = "PENDING"
    accepted = "ACCEPTED"
    declined = "DECLINED"
    expired = "EXPIRED"


class InviteDB(SQLModel, table=True):
    __tablename__ = "invites"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(max_length=255, index=True)
    token: str = Field(unique=True, index=True, max_length=64)
    group_id: UUID = Field(
        foreign_key="groups.id", nullable=False, index=True, ondelete="CASCADE")
    sender_id: UUID = Field(foreign_key="users.id", nullable=False)
    status: InviteStatus = Field(default=InviteStatus.pending, nullable=False)
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
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
