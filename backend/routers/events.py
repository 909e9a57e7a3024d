import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

import storage
from database import get_db
from event_service import (
    get_event_or_404,
    register_team_for_event,
    registered_events_for_user,
    unregister_team_from_event,
)
from models import Event, EventStatus, User
from responses import api_response
from routers.shared import (
    build_event_response,
    build_pagination,
    clamp_limit,
    form_values,
    has_file,
    json_array_any,
)
from schemas import EventCreate, EventListResponse, EventStatusEnum, EventTeamRegistration, EventUpdate
from security import ensure_owner, require_user
from uploads import ALLOWED_IMAGE_TYPES, staged_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

POSTER_KEY_PREFIX = "events"
VALID_STATUSES = {item.value for item in EventStatusEnum}


def _upload_poster(poster_image: UploadFile) -> str:
    with staged_upload(poster_image, "poster_image", allowed_types=ALLOWED_IMAGE_TYPES) as staged:
        uploaded = storage.upload_media(staged.path, POSTER_KEY_PREFIX, staged.content_type, staged.filename)
    return uploaded["url"]


@router.post("")
def create_event(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    start_time: Optional[str] = Form(None),
    end_time: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    max_seats: Optional[str] = Form(None),
    min_team_size: Optional[str] = Form(None),
    max_team_size: Optional[str] = Form(None),
    event_status: Optional[str] = Form(None, alias="status"),
    poster_image: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    payload = EventCreate.model_validate(form_values(
        name=name,
        description=description,
        category=category,
        date=date,
        start_time=start_time,
        end_time=end_time,
        location=location,
        max_seats=max_seats,
        min_team_size=min_team_size,
        max_team_size=max_team_size,
        status=event_status,
    ))

    poster_url = None
    if has_file(poster_image):
        poster_url = _upload_poster(poster_image)
    else:
        logger.info("Creating event '%s' without a poster image", payload.name)

    event = Event(
        name=payload.name,
        description=payload.description,
        category=payload.category,
        date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        location=payload.location,
        max_seats=payload.max_seats,
        min_team_size=payload.min_team_size,
        max_team_size=payload.max_team_size,
        poster_image=poster_url,
        status=EventStatus(payload.status.value),
        created_by_id=user.id,
        is_active=True,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Event %s created by user %s", event.id, user.id)
    return api_response(status.HTTP_201_CREATED, build_event_response(event), "Event created successfully")


@router.get("")
def list_events(
    event_status: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
):
    limit = clamp_limit(limit)
    query = db.query(Event).filter(Event.is_active.is_(True))

    # Unknown statuses are ignored rather than rejected
    if event_status and event_status in VALID_STATUSES:
        query = query.filter(Event.status == EventStatus(event_status))
    if category:
        query = query.filter(json_array_any(db, Event.category, lambda value: value == category))
    if search:
        query = query.filter(
            (Event.name.ilike(f"%{search}%")) |
            (Event.description.ilike(f"%{search}%"))
        )

    total = query.count()
    offset = (page - 1) * limit
    events = (
        query.order_by(Event.date.asc(), Event.created_at.desc(), Event.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    payload = EventListResponse(
        events=[build_event_response(event, include_teams=False) for event in events],
        pagination=build_pagination(page, limit, total),
    )
    return api_response(status.HTTP_200_OK, payload, "Events fetched successfully")


@router.get("/my/registered")
def get_my_registered_events(user: User = Depends(require_user), db: Session = Depends(get_db)):
    events = registered_events_for_user(db, user)
    return api_response(
        status.HTTP_200_OK,
        [build_event_response(event, include_teams=False) for event in events],
        "Registered events fetched successfully",
    )


@router.get("/{event_id}")
def get_event(event_id: int, db: Session = Depends(get_db)):
    event = get_event_or_404(db, event_id)
    return api_response(status.HTTP_200_OK, build_event_response(event), "Event fetched successfully")


@router.put("/{event_id}")
def update_event(
    event_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    start_time: Optional[str] = Form(None),
    end_time: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    max_seats: Optional[str] = Form(None),
    min_team_size: Optional[str] = Form(None),
    max_team_size: Optional[str] = Form(None),
    event_status: Optional[str] = Form(None, alias="status"),
    poster_image: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    event = get_event_or_404(db, event_id)
    ensure_owner(event.created_by_id, user, "Only the event creator can update this event")

    clear_max_team_size = max_team_size is not None and max_team_size.strip().lower() in ("", "null")
    payload = EventUpdate.model_validate(form_values(
        name=name,
        description=description,
        category=category,
        date=date,
        start_time=start_time,
        end_time=end_time,
        location=location,
        max_seats=max_seats,
        min_team_size=min_team_size,
        max_team_size=None if clear_max_team_size else max_team_size,
        status=event_status,
    ))
    changes = payload.model_dump(exclude_unset=True)

    min_size = changes.get("min_team_size", event.min_team_size)
    max_size = None if clear_max_team_size else changes.get("max_team_size", event.max_team_size)
    if max_size is not None and max_size < min_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Maximum team size must be greater than or equal to minimum team size",
        )
    if "max_seats" in changes and changes["max_seats"] < event.registered_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Maximum seats cannot be lower than the {event.registered_count} teams already registered",
        )

    if has_file(poster_image):
        changes["poster_image"] = _upload_poster(poster_image)
    if "status" in changes:
        changes["status"] = EventStatus(changes["status"].value)
    if clear_max_team_size:
        changes["max_team_size"] = None

    for field, value in changes.items():
        setattr(event, field, value)

    db.commit()
    db.refresh(event)
    logger.info("Event %s updated by user %s: %s", event.id, user.id, sorted(changes))
    return api_response(status.HTTP_200_OK, build_event_response(event), "Event updated successfully")


@router.delete("/{event_id}")
def delete_event(event_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    event = get_event_or_404(db, event_id)
    ensure_owner(event.created_by_id, user, "Only the event creator can delete this event")

    event.is_active = False
    db.commit()
    logger.info("Event %s soft-deleted by user %s", event.id, user.id)
    return api_response(status.HTTP_200_OK, None, "Event deleted successfully")


@router.post("/{event_id}/register")
def register_team(
    event_id: int,
    payload: EventTeamRegistration,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    event = register_team_for_event(db, event_id, payload.team_id, user)
    return api_response(status.HTTP_200_OK, build_event_response(event), "Team registered successfully")


@router.delete("/{event_id}/unregister/{team_id}")
def unregister_team(
    event_id: int,
    team_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    unregister_team_from_event(db, event_id, team_id, user)
    return api_response(status.HTTP_200_OK, None, "Team unregistered successfully")
