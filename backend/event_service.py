import logging
from typing import List

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Event, EventRegistration, EventStatus, Team, User
from time_utils import now_utc

logger = logging.getLogger(__name__)


def get_event_or_404(db: Session, event_id: int, for_update: bool = False) -> Event:
    query = db.query(Event).filter(Event.id == event_id)
    if for_update:
        # Serializes concurrent registrations for the same event on backends with row locks
        query = query.with_for_update()
    event = query.first()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def get_team_or_404(db: Session, team_id: int, active_only: bool = False) -> Team:
    query = db.query(Team).filter(Team.id == team_id)
    if active_only:
        query = query.filter(Team.is_active.is_(True))
    team = query.first()
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return team


def ensure_team_leader(team: Team, user: User, detail: str) -> None:
    if team.team_leader_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def team_size_message(event: Event, team_size: int) -> str:
    max_msg = f" and maximum {event.max_team_size}" if event.max_team_size is not None else ""
    return (
        f"Team size must be minimum {event.min_team_size}{max_msg} members. "
        f"Your team has {team_size} members."
    )


def ensure_can_register(event: Event, team: Team) -> None:
    """Raise the first registration rule the event/team pair violates. Performs no writes."""
    if event.status != EventStatus.LIVE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot register for {event.status.value} events. Registration is only open for live events.",
        )
    if not event.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This event is no longer active")
    if event.is_full:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event is full. No more registrations accepted.")
    if not event.is_valid_team_size(team.team_size):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=team_size_message(event, team.team_size))
    if event.registration_for(team.id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Team is already registered for this event")


def register_team_for_event(db: Session, event_id: int, team_id: int, user: User) -> Event:
    event = get_event_or_404(db, event_id, for_update=True)
    team = get_team_or_404(db, team_id, active_only=True)
    ensure_team_leader(team, user, "Only team leader can register the team for events")
    ensure_can_register(event, team)

    # One row backs both event.registrations and team.registrations
    db.add(EventRegistration(event=event, team=team, registered_at=now_utc()))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Team is already registered for this event")

    db.refresh(event)
    logger.info("Team %s registered for event %s (%s/%s seats)", team.id, event.id, event.registered_count, event.max_seats)
    return event


def unregister_team_from_event(db: Session, event_id: int, team_id: int, user: User) -> None:
    event = get_event_or_404(db, event_id)
    team = get_team_or_404(db, team_id)
    ensure_team_leader(team, user, "Only team leader can unregister the team from events")

    registration = event.registration_for(team.id)
    if registration is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is not registered for this event")

    db.delete(registration)
    db.commit()
    logger.info("Team %s unregistered from event %s", team.id, event.id)


def ensure_team_deletable(team: Team) -> None:
    if team.registrations:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete team that is registered for events. Please unregister first.",
        )


def registered_events_for_user(db: Session, user: User) -> List[Event]:
    registered_event_ids = (
        db.query(EventRegistration.event_id)
        .join(Team, Team.id == EventRegistration.team_id)
        .filter(Team.team_leader_id == user.id, Team.is_active.is_(True))
    )
    return (
        db.query(Event)
        .filter(Event.id.in_(registered_event_ids), Event.is_active.is_(True))
        .order_by(Event.date.asc(), Event.id.asc())
        .all()
    )
