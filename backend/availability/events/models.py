from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import ValidationError, ValidationInfo, field_validator, model_validator
from sqlalchemy import UniqueConstraint
from sqlalchemy.sql import func
from sqlmodel import Column, DateTime, Field, SQLModel, String, Text

from availability.users.models import UserSummary


class ResponseStatus(str, Enum):
    available = "AVAILABLE"
    unavailable = "UNAVAILABLE"
    maybe = "MAYBE"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventBase(SQLModel):
    title: str = Field(max_length=200, nullable=False)
    description: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True))
    start_time: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False))
    end_time: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False))


class EventDB(EventBase, table=True):
    __tablename__ = "events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    group_id: UUID = Field(
        foreign_key="groups.id", nullable=False, index=True, ondelete="CASCADE")
    creator_id: UUID = Field(foreign_key="users.id", nullable=False)
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


class AvailabilityResponseDB(SQLModel, table=True):
    __tablename__ = "availability_responses"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id",
                         name="uq_availability_response_event_user"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(
        foreign_key="events.id", nullable=False, index=True, ondelete="CASCADE")
    user_id: UUID = Field(foreign_key="users.id", nullable=False)
    status: ResponseStatus = Field(nullable=False)
    comment: str | None = Field(
        default=None, sa_column=Column(String(500), nullable=True))
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


def _value_error(field: str, value, message: str) -> dict:
    return {"type": "value_error", "loc": (field,), "input": value, "ctx": {"error": message}}


def _clean_description(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class EventCreate(SQLModel):
    title: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    start_time: datetime
    end_time: datetime

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Event title is required")
        return value

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str | None) -> str | None:
        return _clean_description(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def times_as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def check_schedule(self) -> "EventCreate":
        # A past start and a reversed range are reported together
        errors = []
        if self.start_time <= datetime.now(timezone.utc):
            errors.append(_value_error(
                "start_time", self.start_time, "Start time cannot be in the past"))
        if self.start_time >= self.end_time:
            errors.append(_value_error(
                "end_time", self.end_time, "End time must be after start time"))
        if errors:
            raise ValidationError.from_exception_data(type(self).__name__, errors)
        return self


class EventUpdate(SQLModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            raise ValueError("Event title is required")
        value = value.strip()
        if not value:
            raise ValueError("Event title is required")
        return value

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str | None) -> str | None:
        return _clean_description(value)

    @field_validator("start_time")
    @classmethod
    def start_present(cls, value: datetime | None) -> datetime:
        if value is None:
            raise ValueError("Invalid date format")
        return as_utc(value)

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, value: datetime | None, info: ValidationInfo) -> datetime:
        if value is None:
            raise ValueError("Invalid date format")
        value = as_utc(value)
        start_time = info.data.get("start_time")
        if start_time is not None and start_time >= value:
            raise ValueError("End time must be after start time")
        return value


class ResponseCount(SQLModel):
    available: int = 0
    unavailable: int = 0
    maybe: int = 0
    total: int = 0


def calculate_response_count(responses: list[AvailabilityResponseDB]) -> ResponseCount:
    count = ResponseCount(total=len(responses))
    for response in responses:
        if response.status == ResponseStatus.available:
            count.available += 1
        elif response.status == ResponseStatus.unavailable:
            count.unavailable += 1
        elif response.status == ResponseStatus.maybe:
            count.maybe += 1
    return count


class ResponseWrite(SQLModel):
    status: ResponseStatus
    comment: str | None = Field(default=None, max_length=500)

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ResponseRead(SQLModel):
    id: UUID
    event_id: UUID
    user_id: UUID
    status: ResponseStatus
    comment: str | None
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None


class EventGroupSummary(SQLModel):
    id: UUID
    name: str
    owner_id: UUID | None = None


class EventRead(EventBase):
    id: UUID
    group_id: UUID
    creator_id: UUID
    created_at: datetime
    updated_at: datetime
    creator: UserSummary | None = None
    group: EventGroupSummary | None = None
    responses: list[ResponseRead] = []
    response_count: ResponseCount = ResponseCount()
    user_response: ResponseRead | None = None


class EventUpdated(SQLModel):
    message: str
    event: EventRead


class ResponseSaved(SQLModel):
    message: str
    response: ResponseRead
