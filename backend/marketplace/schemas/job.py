from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from marketplace.models.enums import JobStatus, PriceType, Urgency
from marketplace.schemas.common import PageMeta

MAX_REQUIRED_SKILLS = 10


def normalize_skills(skills: list[str]) -> list[str]:
    """Lower-case, trim and de-duplicate skills, keeping first-seen order."""
    seen: list[str] = []
    for skill in skills:
        cleaned = skill.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class Location(BaseModel):
    address: str = Field(min_length=1, max_length=500)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=50)
    zip_code: str | None = Field(default=None, max_length=20)


class JobCreate(BaseModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=20, max_length=2000)
    category: str = Field(min_length=1, max_length=50)
    location: Location
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    price_type: PriceType
    urgency: Urgency = Urgency.NORMAL
    estimated_duration_hours: int | None = Field(default=None, gt=0)
    scheduled_start: datetime | None = None
    required_skills: list[str] = Field(default_factory=list, max_length=MAX_REQUIRED_SKILLS)

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("category must not be blank")
        return v

    @field_validator("required_skills")
    @classmethod
    def _normalize_skills(cls, v: list[str]) -> list[str]:
        return normalize_skills(v)


class JobUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=5, max_length=100)
    description: str | None = Field(default=None, min_length=20, max_length=2000)
    category: str | None = Field(default=None, min_length=1, max_length=50)
    location: Location | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    price_type: PriceType | None = None
    urgency: Urgency | None = None
    estimated_duration_hours: int | None = Field(default=None, gt=0)
    scheduled_start: datetime | None = None
    required_skills: list[str] | None = Field(default=None, max_length=MAX_REQUIRED_SKILLS)

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        if not v:
            raise ValueError("category must not be blank")
        return v

    @field_validator("required_skills")
    @classmethod
    def _normalize_skills(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else normalize_skills(v)


class JobComplete(BaseModel):
    completion_notes: str | None = Field(default=None, max_length=2000)


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    review: str | None = Field(default=None, max_length=2000)


class LocationResponse(BaseModel):
    address: str
    latitude: float
    longitude: float
    city: str | None
    state: str | None
    zip_code: str | None


class JobResponse(BaseModel):
    id: str
    poster_id: str
    worker_id: str | None
    title: str
    description: str
    category: str
    location: LocationResponse
    price: Decimal
    price_type: PriceType
    urgency: Urgency
    estimated_duration_hours: int | None
    scheduled_start: str | None
    actual_start: str | None
    actual_end: str | None
    status: JobStatus
    completion_notes: str | None
    poster_rating: int | None
    worker_rating: int | None
    poster_review: str | None
    worker_review: str | None
    required_skills: list[str] = []
    created_at: str
    updated_at: str
    applications_count: int | None = None
    distance_km: float | None = None


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    meta: PageMeta
