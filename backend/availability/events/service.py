import logging
from collections import defaultdict
from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from availability.database import get_db
from availability.events.models import (
    EventCreate,
    EventDB,
    EventGroupSummary,
    EventRead,
    EventUpdate,
    EventUpdated,
    ResponseRead,
    ResponseSaved,
    ResponseWrite,
    as_utc,
    calculate_response_count,
)
from availability.events.repository import EventRepository
from availability.groups.access import Action, GroupAccess
from availability.groups.models import GroupDB, MessageResponse
from availability.groups.repository import GroupRepository
from availability.users.models import UserDB, UserSummary
from availability.users.service import get_users_by_ids

logger = logging.getLogger(__name__)

NO_GROUP_ACCESS = "Group not found or insufficient permissions"


def response_to_read(response, user: UserDB | None) -> ResponseRead:
    return ResponseRead(
        **response.model_dump(),
        user=UserSummary.model_validate(user) if user else None,
    )


class EventService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = EventRepository(db)
        self.groups = GroupRepository(db)

    async def _access(
        self, group: GroupDB, user_id: UUID, creator_id: UUID | None = None
    ) -> GroupAccess:
        membership = await self.groups.get_membership(group.id, user_id)
        return GroupAccess.resolve(group, membership, user_id, event_creator_id=creator_id)

    async def _group_for(self, group_id: UUID, user_id: UUID, action: Action) -> GroupDB:
        group = await self.groups.get(group_id)
        if group is None or not (await self._access(group, user_id)).can(action):
            raise HTTPException(status_code=404, detail=NO_GROUP_ACCESS)
        return group

    async def _event_for(
        self, event_id: UUID, user_id: UUID, action: Action, denied: str
    ) -> tuple[EventDB, GroupDB]:
        event = await self.repository.get(event_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Event not found")
        group = await self.groups.get(event.group_id)
        if group is None:
            raise HTTPException(status_code=404, detail="Event not found")
        access = await self._access(group, user_id, event.creator_id)
        if not access.can(action):
            raise HTTPException(status_code=403, detail=denied)
        return event, group

    async def build_event_reads(
        self,
        events: list[EventDB],
        group: GroupDB,
        user_id: UUID,
        include_responses: bool = False,
    ) -> list[EventRead]:
        """Attach creator, group summary, response counts and the caller's own response."""
        if not events:
            return []

        rows = await self.repository.list_responses([event.id for event in events])
        creators = await get_users_by_ids({event.creator_id for event in events}, self.db)

        responses_by_event: dict[UUID, list[ResponseRead]] = defaultdict(list)
        for response, user in rows:
            responses_by_event[response.event_id].append(response_to_read(response, user))

        group_summary = EventGroupSummary(id=group.id, name=group.name, owner_id=group.owner_id)
        reads = []
        for event in events:
            responses = responses_by_event.get(event.id, [])
            creator = creators.get(event.creator_id)
            reads.append(
                EventRead(
                    **event.model_dump(),
                    creator=UserSummary.model_validate(creator) if creator else None,
                    group=group_summary,
                    responses=responses if include_responses else [],
                    response_count=calculate_response_count(responses),
                    user_response=next(
                        (r for r in responses if r.user_id == user_id), None
                    ),
                )
            )
        return reads

    async def list_group_events(self, group_id: UUID, user: UserDB) -> list[EventRead]:
        group = await self._group_for(group_id, user.id, Action.event_list)
        events = await self.repository.list_for_group(group_id)
        return await self.build_event_reads(events, group, user.id)

    async def create_event(self, group_id: UUID, user: UserDB, data: EventCreate) -> EventRead:
        group = await self._group_for(group_id, user.id, Action.event_create)
        event = await self.repository.create(group_id, user.id, data)
        logger.info("Event %s created in group %s by %s", event.id, group_id, user.id)
        reads = await self.build_event_reads([event], group, user.id)
        return reads[0]

    async def get_event(self, event_id: UUID, user: UserDB) -> EventRead:
        event, group = await self._event_for(
            event_id, user.id, Action.event_read, "Access denied")
        reads = await self.build_event_reads([event], group, user.id, include_responses=True)
        return reads[0]

    async def update_event(
        self, event_id: UUID, user: UserDB, data: EventUpdate
    ) -> EventUpdated:
        """Partial update. Past start times are allowed here, unlike on create."""
        event, group = await self._event_for(
            event_id, user.id, Action.event_update, "Permission denied")

        update_data = data.model_dump(exclude_unset=True)
        start_time = update_data.get("start_time", as_utc(event.start_time))
        end_time = update_data.get("end_time", as_utc(event.end_time))
        if start_time >= end_time:
            raise RequestValidationError(
                [
                    {
                        "type": "value_error",
                        "loc": ("body", "end_time"),
                        "msg": "End time must be after start time",
                    }
                ]
            )

        event = await self.repository.update(event, update_data)
        reads = await self.build_event_reads([event], group, user.id, include_responses=True)
        return EventUpdated(message="Event updated successfully", event=reads[0])

    async def delete_event(self, event_id: UUID, user: UserDB) -> MessageResponse:
        event, _ = await self._event_for(
            event_id, user.id, Action.event_delete, "Permission denied")
        await self.repository.delete(event)
        logger.info("Event %s deleted by %s", event_id, user.id)
        return MessageResponse(message="Event deleted successfully")

    async def list_responses(self, event_id: UUID, user: UserDB) -> list[ResponseRead]:
        await self._event_for(event_id, user.id, Action.response_list, "Access denied")
        rows = await self.repository.list_responses([event_id])
        return [response_to_read(response, responder) for response, responder in rows]

    async def submit_response(
        self, event_id: UUID, user: UserDB, data: ResponseWrite
    ) -> ResponseSaved:
        await self._event_for(event_id, user.id, Action.response_submit, "Access denied")
        response = await self.repository.upsert_response(event_id, user.id, data)
        return ResponseSaved(
            message="Response saved successfully",
            response=response_to_read(response, user),
        )


def get_event_service(db: AsyncSession = Depends(get_db)) -> EventService:
    return EventService(db)
