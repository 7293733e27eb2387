from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from availability.events.models import (
    AvailabilityResponseDB,
    EventCreate,
    EventDB,
    ResponseWrite,
)
from availability.users.models import UserDB


class EventRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, event_id: UUID) -> EventDB | None:
        result = await self.db.execute(select(EventDB).where(EventDB.id == event_id))
        return result.scalar_one_or_none()

    async def list_for_group(self, group_id: UUID) -> list[EventDB]:
        result = await self.db.execute(
            select(EventDB)
            .where(EventDB.group_id == group_id)
            .order_by(EventDB.start_time.asc())
        )
        return list(result.scalars().all())

    async def list_responses(self, event_ids: list[UUID]) -> list:
        """(response, user) rows for the given events, newest first."""
        if not event_ids:
            return []
        result = await self.db.execute(
            select(AvailabilityResponseDB, UserDB)
            .join(UserDB, AvailabilityResponseDB.user_id == UserDB.id)
            .where(AvailabilityResponseDB.event_id.in_(event_ids))
            .order_by(AvailabilityResponseDB.created_at.desc())
        )
        return result.all()

    async def get_response(self, event_id: UUID, user_id: UUID) -> AvailabilityResponseDB | None:
        result = await self.db.execute(
            select(AvailabilityResponseDB).where(
                AvailabilityResponseDB.event_id == event_id,
                AvailabilityResponseDB.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def count_upcoming(self, group_ids: list[UUID]) -> int:
        if not group_ids:
            return 0
        result = await self.db.execute(
            select(func.count())
            .select_from(EventDB)
            .where(
                EventDB.group_id.in_(group_ids),
                EventDB.start_time > datetime.now(timezone.utc),
            )
        )
        return result.scalar_one()

    async def create(self, group_id: UUID, creator_id: UUID, data: EventCreate) -> EventDB:
        db_event = EventDB(
            **data.model_dump(),
            group_id=group_id,
            creator_id=creator_id,
        )
        self.db.add(db_event)
        await self.db.commit()
        await self.db.refresh(db_event)
        return db_event

    async def update(self, event: EventDB, data: dict) -> EventDB:
        for key, value in data.items():
            setattr(event, key, value)
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def delete(self, event: EventDB) -> None:
        await self.db.execute(
            delete(AvailabilityResponseDB).where(
                AvailabilityResponseDB.event_id == event.id
            )
        )
        await self.db.delete(event)
        await self.db.commit()

    async def upsert_response(
        self, event_id: UUID, user_id: UUID, data: ResponseWrite
    ) -> AvailabilityResponseDB:
        """One response per (event, user); a resubmission overwrites it."""
        response = await self.get_response(event_id, user_id)
        if response is None:
            response = AvailabilityResponseDB(
                event_id=event_id,
                user_id=user_id,
                status=data.status,
                comment=data.comment,
            )
        else:
            response.status = data.status
            response.comment = data.comment
            # updated_at moves on every resubmission, changed or not
            response.updated_at = datetime.now(timezone.utc)
        self.db.add(response)
        await self.db.commit()
        await self.db.refresh(response)
        return response
