"""Events router module."""

from fastapi import APIRouter, Depends, Request, Response

from ...db.repository import EventRepository
from ..responses import write_json

router = APIRouter(tags=["events"])


def get_repository(request: Request) -> EventRepository:
    """The repository the application was built with."""
    return request.app.state.repository


@router.get("/events")
async def list_events(repository: EventRepository = Depends(get_repository)) -> Response:
    """List all events in insertion order."""
    events = [event.to_dict() for event in repository.list_events()]
    return write_json(200, {"events": events, "total": len(events)})


@router.get("/events/{event_id}")
async def get_event(event_id: str, repository: EventRepository = Depends(get_repository)) -> Response:
    """Get a single event by ID. A miss raises NotFoundError, rendered as 404."""
    return write_json(200, repository.get_event(event_id).to_dict())
