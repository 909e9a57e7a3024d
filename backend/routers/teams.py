import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from event_service import ensure_team_deletable, ensure_team_leader, get_team_or_404
from models import Team, TeamMember, User
from responses import api_response
from routers.shared import build_team_response
from schemas import TeamCreate, TeamMemberPayload, TeamUpdate
from security import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teams", tags=["teams"])


def _name_taken(db: Session, leader_id: int, team_name: str, exclude_team_id: Optional[int] = None) -> bool:
    query = db.query(Team).filter(
        Team.team_leader_id == leader_id,
        func.lower(Team.team_name) == team_name.lower(),
        Team.is_active.is_(True),
    )
    if exclude_team_id is not None:
        query = query.filter(Team.id != exclude_team_id)
    return query.first() is not None


def _build_members(members: List[TeamMemberPayload]) -> List[TeamMember]:
    return [
        TeamMember(
            full_name=member.full_name,
            usn=member.usn,
            current_semester=member.current_semester,
            department=member.department,
        )
        for member in members
    ]


@router.post("")
def create_team(payload: TeamCreate, user: User = Depends(require_user), db: Session = Depends(get_db)):
    if _name_taken(db, user.id, payload.team_name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You already have a team with this name")

    team = Team(team_name=payload.team_name, team_leader_id=user.id, is_active=True)
    team.members = _build_members(payload.members)
    db.add(team)
    db.commit()
    db.refresh(team)
    logger.info("User %s created team %s with %s members", user.id, team.id, team.team_size)
    return api_response(status.HTTP_201_CREATED, build_team_response(team), "Team created successfully")


@router.get("")
def get_my_teams(user: User = Depends(require_user), db: Session = Depends(get_db)):
    teams = (
        db.query(Team)
        .filter(Team.team_leader_id == user.id, Team.is_active.is_(True))
        .order_by(Team.created_at.desc(), Team.id.desc())
        .all()
    )
    return api_response(
        status.HTTP_200_OK,
        [build_team_response(team) for team in teams],
        "Teams fetched successfully",
    )


@router.get("/{team_id}")
def get_team(team_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    team = get_team_or_404(db, team_id)
    ensure_team_leader(team, user, "You are not authorized to view this team")
    return api_response(status.HTTP_200_OK, build_team_response(team), "Team fetched successfully")


@router.put("/{team_id}")
def update_team(
    team_id: int,
    payload: TeamUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    team = get_team_or_404(db, team_id)
    ensure_team_leader(team, user, "Only team leader can update the team")

    if payload.team_name:
        if _name_taken(db, user.id, payload.team_name, exclude_team_id=team.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You already have another team with this name")
        team.team_name = payload.team_name

    if payload.members:
        team.members = _build_members(payload.members)

    db.commit()
    db.refresh(team)
    return api_response(status.HTTP_200_OK, build_team_response(team), "Team updated successfully")


@router.delete("/{team_id}")
def delete_team(team_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    team = get_team_or_404(db, team_id)
    ensure_team_leader(team, user, "Only team leader can delete the team")
    ensure_team_deletable(team)

    team.is_active = False
    db.commit()
    logger.info("Team %s soft-deleted by user %s", team.id, user.id)
    return api_response(status.HTTP_200_OK, None, "Team deleted successfully")
