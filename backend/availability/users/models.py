from datetime import datetime
from uuid import UUID, uuid4

from pydantic import field_validator
from sqlalchemy.sql import func
from sqlmodel import Column, DateTime, Field, Relationship, SQLModel, UniqueConstraint


class UserBase(SQLModel):
    name: str | None = Field(default=None, max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    image: str | None = Field(default=None)


class UserDB(UserBase, table=True):
    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
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

    oauth_accounts: list["OAuthAccountDB"] = Relationship(back_populates="user")


class UserRead(SQLModel):
    id: UUID
    name: str | None
    email: str
    image: str | None
    created_at: datetime
    updated_at: datetime


class UserSummary(SQLModel):
    id: UUID
    name: str | None
    email: str
    image: str | None = None


class UserCounts(SQLModel):
    owned_groups: int = 0
    memberships: int = 0
    created_events: int = 0
    responses: int = 0


class ProfileRead(UserRead):
    counts: UserCounts


class ProfileUpdate(SQLModel):
    name: str = Field(max_length=100)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class OAuthAccountBase(SQLModel):
    provider: str = Field(index=True)
    sub_id: str = Field(index=True)


class OAuthAccountDB(OAuthAccountBase, table=True):
    __tablename__ = "oauth_accounts"
    __table_args__ = (UniqueConstraint("provider", "sub_id"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", nullable=False)
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

    user: UserDB = Relationship(back_populates="oauth_accounts")
