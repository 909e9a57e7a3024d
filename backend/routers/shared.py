import math
from typing import Callable, Optional

from sqlalchemy import func, literal, select
from sqlalchemy.orm import Session

from models import Event, GalleryItem, Team, User
from schemas import (
    EventResponse,
    EventStatusEnum,
    EventSummary,
    GalleryItemResponse,
    MediaTypeEnum,
    PaginationMeta,
    RegisteredTeamResponse,
    TeamMemberResponse,
    TeamResponse,
    UserBrief,
)


def _user_brief(user: Optional[User]) -> Optional[UserBrief]:
    if user is None:
        return None
    return UserBrief.model_validate(user)


def build_event_summary(event: Event) -> EventSummary:
    return EventSummary(
        id=event.id,
        name=event.name,
        date=event.date,
        location=event.location,
        status=EventStatusEnum(event.status.value),
        is_active=event.is_active,
    )


def build_team_response(team: Team) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        team_name=team.team_name,
        team_leader=_user_brief(team.team_leader),
        members=[TeamMemberResponse.model_validate(member) for member in team.members],
        team_size=team.team_size,
        registered_events=[build_event_summary(event) for event in team.registered_events],
        is_active=team.is_active,
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


def build_event_response(event: Event, include_teams: bool = True) -> EventResponse:
    registered_teams = []
    if include_teams:
        registered_teams = [
            RegisteredTeamResponse(
                team_id=registration.team.id,
                team_name=registration.team.team_name,
                team_size=registration.team.team_size,
                team_leader=_user_brief(registration.team.team_leader),
                registered_at=registration.registered_at,
            )
            for registration in event.registrations
        ]
    return EventResponse(
        id=event.id,
        name=event.name,
        description=event.description,
        category=list(event.category or []),
        date=event.date,
        start_time=event.start_time,
        end_time=event.end_time,
        location=event.location,
        max_seats=event.max_seats,
        min_team_size=event.min_team_size,
        max_team_size=event.max_team_size,
        poster_image=event.poster_image,
        status=EventStatusEnum(event.status.value),
        is_active=event.is_active,
        created_by=_user_brief(event.creator),
        registered_teams=registered_teams,
        registered_count=event.registered_count,
        available_seats=event.available_seats,
        is_full=event.is_full,
        can_register=event.can_register(),
        created_at=event.created_at,
        updated_at=event.updated_at,
    )


def build_gallery_item_response(item: GalleryItem) -> GalleryItemResponse:
    return GalleryItemResponse(
        id=item.id,
        title=item.title,
        description=item.description,
        media_type=MediaTypeEnum(item.media_type.value),
        media_url=item.media_url,
        thumbnail_url=item.thumbnail_url,
        storage_key=item.storage_key,
        category=item.category,
        tags=list(item.tags or []),
        uploaded_by=_user_brief(item.uploader),
        is_active=item.is_active,
        view_count=item.view_count or 0,
        metadata=dict(item.media_metadata or {}),
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def build_pagination(page: int, limit: int, total: int, with_navigation: bool = False) -> PaginationMeta:
    total_pages = math.ceil(total / limit) if limit else 0
    meta = PaginationMeta(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=limit,
    )
    if with_navigation:
        meta.has_next_page = page < total_pages
        meta.has_prev_page = page > 1
    return meta


def form_values(**fields) -> dict:
    # Multipart forms send blanks for untouched inputs
    return {
        key: value
        for key, value in fields.items()
        if value is not None and not (isinstance(value, str) and value.strip() == "")
    }


def has_file(upload) -> bool:
    return upload is not None and bool(upload.filename)


MAX_PAGE_SIZE = 100


def clamp_limit(limit: int) -> int:
    return min(limit, MAX_PAGE_SIZE)


def json_array_any(db: Session, column, predicate: Callable):
    """EXISTS clause that is true when any element of a JSON array column satisfies ``predicate``.

    Elements are compared as decoded text, so non-ASCII values and
    LIKE metacharacters are matched against what was stored, not
    against the serialized array.
    """
    if db.get_bind().dialect.name == "postgresql":
        elements = func.json_array_elements_text(column).table_valued("value")
    else:
        elements = func.json_each(column).table_valued("value")
    return select(literal(1)).select_from(elements).where(predicate(elements.c.value)).exists()
