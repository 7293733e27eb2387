from uuid import UUID

from fastapi import APIRouter, Depends

from availability.auth.dependencies import get_current_user
from availability.events.models import (
    EventCreate,
    EventRead,
    EventUpdate,
    EventUpdated,
    ResponseRead,
    ResponseSaved,
    ResponseWrite,
)
from availability.events.service import EventService, get_event_service
from availability.groups.models import MessageResponse
from availability.users.models import UserDB

router = APIRouter(tags=["events"])


@router.get("/groups/{group_id}/events", response_model=list[EventRead])
async def list_group_events(
    group_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> list[EventRead]:
    return await service.list_group_events(group_id, current_user)


@router.post("/groups/{group_id}/events", response_model=EventRead, status_code=201)
async def create_event(
    group_id: UUID,
    data: EventCreate,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> EventRead:
    return await service.create_event(group_id, current_user, data)


@router.get("/events/{event_id}", response_model=EventRead)
async def get_event(
    event_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> EventRead:
    return await service.get_event(event_id, current_user)


@router.put("/events/{event_id}", response_model=EventUpdated)
async def update_event(
    event_id: UUID,
    data: EventUpdate,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> EventUpdated:
    """Update an event. Creator or group owner only."""
    return await service.update_event(event_id, current_user, data)


@router.delete("/events/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> MessageResponse:
    """Delete an event and its responses. Creator or group owner only."""
    return await service.delete_event(event_id, current_user)


@router.get("/events/{event_id}/responses", response_model=list[ResponseRead])
async def list_event_responses(
    event_id: UUID,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> list[ResponseRead]:
    return await service.list_responses(event_id, current_user)


@router.post("/events/{event_id}/responses", response_model=ResponseSaved)
async def submit_event_response(
    event_id: UUID,
    data: ResponseWrite,
    current_user: UserDB = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
) -> ResponseSaved:
    """Create or overwrite the current user's response to an event."""
    return await service.submit_response(event_id, current_user, data)
