from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Text, JSON,
    CheckConstraint, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventStatus(enum.Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class MediaType(enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    usn = Column(String(20), unique=True, index=True, nullable=False)
    semester = Column(String(10), nullable=False)
    department = Column(String(150), nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_otp = Column(String(6), nullable=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_otp = Column(String(6), nullable=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teams = relationship("Team", back_populates="team_leader")


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    team_name = Column(String(50), nullable=False)
    team_leader_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    team_leader = relationship("User", back_populates="teams")
    members = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.id",
    )
    registrations = relationship(
        "EventRegistration",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="EventRegistration.registered_at",
    )

    __table_args__ = (
        Index("ix_teams_name_leader", "team_name", "team_leader_id"),
    )

    @property
    def team_size(self) -> int:
        return len(self.members)

    @property
    def registered_events(self):
        return [registration.event for registration in self.registrations]


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    usn = Column(String(20), nullable=False)
    current_semester = Column(Integer, nullable=False)
    department = Column(String(150), nullable=False)

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        CheckConstraint("current_semester BETWEEN 1 AND 8", name="ck_team_members_semester_range"),
    )


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(JSON, nullable=False)  # ["Technical", "Workshop"]
    date = Column(DateTime(timezone=True), nullable=False)
    start_time = Column(String(20), nullable=False)
    end_time = Column(String(20), nullable=False)
    location = Column(String(255), nullable=False)
    max_seats = Column(Integer, nullable=False)
    min_team_size = Column(Integer, default=1, nullable=False)
    max_team_size = Column(Integer, nullable=True)  # None means no upper bound
    poster_image = Column(String(500), nullable=True)
    status = Column(SQLEnum(EventStatus), default=EventStatus.UPCOMING, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    creator = relationship("User")
    registrations = relationship(
        "EventRegistration",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventRegistration.registered_at",
    )

    __table_args__ = (
        CheckConstraint("max_seats >= 1", name="ck_events_max_seats_positive"),
        CheckConstraint("min_team_size >= 1", name="ck_events_min_team_size_positive"),
        CheckConstraint(
            "max_team_size IS NULL OR max_team_size >= min_team_size",
            name="ck_events_team_size_bounds",
        ),
        Index("ix_events_status_date", "status", "date"),
    )

    @property
    def registered_count(self) -> int:
        return len(self.registrations)

    @property
    def available_seats(self) -> int:
        return self.max_seats - self.registered_count

    @property
    def is_full(self) -> bool:
        return self.registered_count >= self.max_seats

    def can_register(self) -> bool:
        return self.status == EventStatus.LIVE and self.is_active and not self.is_full

    def is_valid_team_size(self, team_size: int) -> bool:
        if team_size < self.min_team_size:
            return False
        if self.max_team_size is not None and team_size > self.max_team_size:
            return False
        return True

    def registration_for(self, team_id: int):
        for registration in self.registrations:
            if registration.team_id == team_id:
                return registration
        return None


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    registered_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    event = relationship("Event", back_populates="registrations")
    team = relationship("Team", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("event_id", "team_id", name="uq_event_registrations_event_team"),
    )


class GalleryItem(Base):
    __tablename__ = "gallery_items"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    media_type = Column(SQLEnum(MediaType), nullable=False)
    media_url = Column(String(500), nullable=False)
    thumbnail_url = Column(String(500), nullable=True)
    storage_key = Column(String(500), nullable=False)
    category = Column(String(120), default="general", nullable=False)
    tags = Column(JSON, nullable=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    media_metadata = Column(JSON, nullable=True)  # {"width", "height", "format", "size", "duration"}
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    uploader = relationship("User")

    __table_args__ = (
        Index("ix_gallery_items_category_created", "category", "created_at"),
        Index("ix_gallery_items_active_created", "is_active", "created_at"),
    )

    def increment_view_count(self) -> int:
        self.view_count = (self.view_count or 0) + 1
        return self.view_count
