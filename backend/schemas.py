from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any, Union
from enum import Enum
from datetime import datetime
import json


class EventStatusEnum(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class MediaTypeEnum(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


def parse_string_list(value: Union[str, List[str], None]) -> Optional[List[str]]:
    """Accept a JSON array, a comma separated string or a list; return a clean list."""
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        parsed: Any = None
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
        items = parsed if isinstance(parsed, list) else raw.split(",")
    else:
        items = value
    return [str(item).strip() for item in items if str(item).strip()]


# Auth Schemas
class UserRegister(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1)
    usn: str = Field(..., min_length=1, max_length=20)
    semester: str = Field(..., min_length=1, max_length=10)
    department: str = Field(..., min_length=1, max_length=150)

    @field_validator("full_name", "department")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("semester", mode="before")
    @classmethod
    def coerce_semester(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("usn")
    @classmethod
    def normalize_usn(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError("USN is required")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class EmailVerificationRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)
    new_password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class UserBrief(BaseModel):
    id: int
    full_name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: int
    full_name: str
    email: str
    usn: str
    semester: str
    department: str
    is_email_verified: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str


# Team Schemas
class TeamMemberPayload(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    usn: str = Field(..., min_length=1, max_length=20)
    current_semester: int = Field(..., ge=1, le=8)
    department: str = Field(..., min_length=1, max_length=150)

    @field_validator("full_name", "department")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("usn")
    @classmethod
    def normalize_usn(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError("Member USN is required")
        return v


class TeamCreate(BaseModel):
    team_name: str = Field(..., min_length=3, max_length=50)
    members: List[TeamMemberPayload] = Field(..., min_length=1)

    @field_validator("team_name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Team name must be at least 3 characters")
        return v


class TeamUpdate(BaseModel):
    team_name: Optional[str] = Field(None, min_length=3, max_length=50)
    members: Optional[List[TeamMemberPayload]] = None

    @field_validator("team_name")
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Team name must be at least 3 characters")
        return v


class TeamMemberResponse(BaseModel):
    id: int
    full_name: str
    usn: str
    current_semester: int
    department: str

    model_config = ConfigDict(from_attributes=True)


class EventSummary(BaseModel):
    id: int
    name: str
    date: datetime
    location: str
    status: EventStatusEnum
    is_active: bool


class TeamResponse(BaseModel):
    id: int
    team_name: str
    team_leader: UserBrief
    members: List[TeamMemberResponse]
    team_size: int
    registered_events: List[EventSummary] = []
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Event Schemas
class EventCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    category: List[str] = Field(..., min_length=1)
    date: datetime
    start_time: str = Field(..., min_length=1, max_length=20)
    end_time: str = Field(..., min_length=1, max_length=20)
    location: str = Field(..., min_length=1, max_length=255)
    max_seats: int = Field(..., ge=1)
    min_team_size: int = Field(1, ge=1)
    max_team_size: Optional[int] = Field(None, ge=1)
    status: EventStatusEnum = EventStatusEnum.UPCOMING

    @field_validator("category", mode="before")
    @classmethod
    def parse_category(cls, v):
        return parse_string_list(v)

    @field_validator("name", "description", "location")
    @classmethod
    def strip_text(cls, v):
        return v.strip()

    @model_validator(mode="after")
    def validate_team_size_bounds(self):
        if self.max_team_size is not None and self.max_team_size < self.min_team_size:
            raise ValueError("Maximum team size must be greater than or equal to minimum team size")
        return self


class EventUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    category: Optional[List[str]] = Field(None, min_length=1)
    date: Optional[datetime] = None
    start_time: Optional[str] = Field(None, min_length=1, max_length=20)
    end_time: Optional[str] = Field(None, min_length=1, max_length=20)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    max_seats: Optional[int] = Field(None, ge=1)
    min_team_size: Optional[int] = Field(None, ge=1)
    max_team_size: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatusEnum] = None

    @field_validator("category", mode="before")
    @classmethod
    def parse_category(cls, v):
        return parse_string_list(v)

    @field_validator("name", "description", "location")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if v is not None else v


class EventTeamRegistration(BaseModel):
    team_id: int


class RegisteredTeamResponse(BaseModel):
    team_id: int
    team_name: str
    team_size: int
    team_leader: Optional[UserBrief] = None
    registered_at: datetime


class EventResponse(BaseModel):
    id: int
    name: str
    description: str
    category: List[str]
    date: datetime
    start_time: str
    end_time: str
    location: str
    max_seats: int
    min_team_size: int
    max_team_size: Optional[int] = None
    poster_image: Optional[str] = None
    status: EventStatusEnum
    is_active: bool
    created_by: Optional[UserBrief] = None
    registered_teams: List[RegisteredTeamResponse] = []
    registered_count: int
    available_seats: int
    is_full: bool
    can_register: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaginationMeta(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: Optional[bool] = None
    has_prev_page: Optional[bool] = None


class EventListResponse(BaseModel):
    events: List[EventResponse]
    pagination: PaginationMeta


# Gallery Schemas
class GalleryItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=120)
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v):
        return parse_string_list(v)


class GalleryItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    media_type: MediaTypeEnum
    description: Optional[str] = None
    category: str = Field("general", min_length=1, max_length=120)
    tags: List[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v):
        return parse_string_list(v) or []

    @field_validator("title")
    @classmethod
    def strip_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class GalleryItemResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    media_type: MediaTypeEnum
    media_url: str
    thumbnail_url: Optional[str] = None
    storage_key: str
    category: str
    tags: List[str] = []
    uploaded_by: Optional[UserBrief] = None
    is_active: bool
    view_count: int
    metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GalleryListResponse(BaseModel):
    gallery_items: List[GalleryItemResponse]
    pagination: PaginationMeta


class BulkDeleteRequest(BaseModel):
    ids: List[int] = []


class CategoryCount(BaseModel):
    category: str
    count: int


class RecentGalleryItem(BaseModel):
    id: int
    title: str
    media_type: MediaTypeEnum
    category: str
    view_count: int
    created_at: Optional[datetime] = None


class GalleryStatsResponse(BaseModel):
    total_items: int
    active_items: int
    inactive_items: int
    image_count: int
    video_count: int
    total_views: int
    category_counts: List[CategoryCount]
    recent_items: List[RecentGalleryItem]
