"""
Job repository: creation, guarded edits and deletion, and the filtered,
distance-aware search that feeds the worker job list.
"""
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.dependencies import Actor
from marketplace.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from marketplace.models.application import Application
from marketplace.models.enums import JobStatus
from marketplace.models.job import Job, JobSkill
from marketplace.schemas.common import PageMeta
from marketplace.schemas.job import JobCreate, normalize_skills
from marketplace.utils.timestamps import to_timestamp, utc_now

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "price", "distance")

# Columns that may never be cleared through an update.
_REQUIRED_FIELDS = {"title", "description", "category", "location", "price", "price_type", "urgency"}


@dataclass
class JobSearchFilters:
    category: str | None = None
    status: JobStatus | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    skills: list[str] = field(default_factory=list)
    search: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius_km: float | None = None
    poster_id: str | None = None
    worker_id: str | None = None
    sort_by: str = "created_at"
    sort_order: str | None = None
    page: int = 1
    limit: int = 20


@dataclass
class JobPage:
    results: list[tuple[Job, float | None]]
    meta: PageMeta


def require_role(actor: Actor, role: str, action: str) -> None:
    if actor.role != role:
        raise ForbiddenError(f"Only {role}s can {action}")


def build_job(poster_id: str, req: JobCreate) -> Job:
    now = utc_now()
    job = Job(
        id=str(uuid.uuid4()),
        poster_id=poster_id,
        worker_id=None,
        title=req.title,
        description=req.description,
        category=req.category,
        location_address=req.location.address,
        location_lat=req.location.latitude,
        location_lng=req.location.longitude,
        location_city=req.location.city,
        location_state=req.location.state,
        location_zip=req.location.zip_code,
        price=req.price,
        price_type=req.price_type,
        urgency=req.urgency,
        estimated_duration_hours=req.estimated_duration_hours,
        scheduled_start=to_timestamp(req.scheduled_start),
        status=JobStatus.OPEN,
        created_at=now,
        updated_at=now,
    )
    job.set_required_skills(req.required_skills)
    return job


def create_job(db: Session, actor: Actor, req: JobCreate) -> Job:
    require_role(actor, "poster", "create jobs")
    job = build_job(actor.user_id, req)
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("Job %s created by poster %s", job.id, actor.user_id)
    return job


def get_job(db: Session, job_id: str) -> Job:
    job = db.get(Job, job_id)
    if job is None:
        raise NotFoundError("Job not found")
    return job


def count_applications(db: Session, job_id: str) -> int:
    return db.query(func.count(Application.id)).filter(Application.job_id == job_id).scalar()


def _column_values(changes: dict) -> dict:
    values = {}
    for key, value in changes.items():
        if value is None and key in _REQUIRED_FIELDS:
            raise ValidationError(f"{key} cannot be cleared")
        if key == "location":
            values.update(
                location_address=value["address"],
                location_lat=value["latitude"],
                location_lng=value["longitude"],
                location_city=value.get("city"),
                location_state=value.get("state"),
                location_zip=value.get("zip_code"),
            )
        elif key == "scheduled_start":
            values["scheduled_start"] = to_timestamp(value)
        elif key != "required_skills":
            values[key] = value
    return values


def apply_job_changes(db: Session, job: Job, changes: dict) -> None:
    """
    Write `changes` (a JobUpdate-shaped dict) to an open job without committing.
    The row update is guarded on `status = 'open'`, so a job assigned in the
    meantime is reported as InvalidStateError instead of being edited.
    """
    if job.status != JobStatus.OPEN:
        raise InvalidStateError(f"Only open jobs can be edited; job is {job.status.value}")

    values = _column_values(changes)
    values["updated_at"] = utc_now()
    result = db.execute(
        update(Job)
        .where(Job.id == job.id, Job.status == JobStatus.OPEN)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidStateError("Job is no longer open")

    if changes.get("required_skills") is not None:
        job.set_required_skills(normalize_skills(changes["required_skills"]))
        db.flush()


def update_job(db: Session, actor: Actor, job_id: str, changes: dict) -> Job:
    job = get_job(db, job_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can edit it")
    try:
        apply_job_changes(db, job, changes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("Job %s updated (%s)", job.id, ", ".join(sorted(changes)))
    return job


def delete_job(db: Session, actor: Actor, job_id: str) -> None:
    job = get_job(db, job_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can delete it")
    if job.status != JobStatus.OPEN:
        raise InvalidStateError(f"Only open jobs can be deleted; job is {job.status.value}")

    try:
        result = db.execute(
            delete(Job)
            .where(Job.id == job_id, Job.status == JobStatus.OPEN)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError("Job is no longer open")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expunge(job)
    logger.info("Job %s deleted by poster %s", job_id, actor.user_id)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_jobs(db: Session, filters: JobSearchFilters) -> JobPage:
    page = max(1, filters.page)
    limit = max(1, min(filters.limit, settings.max_page_size))

    if (filters.latitude is None) != (filters.longitude is None):
        raise ValidationError("latitude and longitude must be supplied together")
    if (
        filters.min_price is not None
        and filters.max_price is not None
        and filters.min_price > filters.max_price
    ):
        raise ValidationError("min_price cannot exceed max_price")
    if filters.sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of {', '.join(SORT_FIELDS)}")

    geo = filters.latitude is not None
    distance = None
    if geo:
        distance = func.distance_km(
            filters.latitude, filters.longitude, Job.location_lat, Job.location_lng
        )
        query = db.query(Job, distance.label("distance_km"))
        radius = filters.radius_km if filters.radius_km is not None else settings.default_search_radius_km
        query = query.filter(distance <= radius)
    else:
        query = db.query(Job)

    if filters.category:
        query = query.filter(Job.category == filters.category.strip().lower())
    if filters.status:
        query = query.filter(Job.status == filters.status)
    if filters.min_price is not None:
        query = query.filter(Job.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Job.price <= filters.max_price)
    if filters.poster_id:
        query = query.filter(Job.poster_id == filters.poster_id)
    if filters.worker_id:
        query = query.filter(Job.worker_id == filters.worker_id)
    skills = normalize_skills(filters.skills)
    if skills:
        query = query.filter(
            Job.id.in_(select(JobSkill.job_id).where(JobSkill.skill.in_(skills)))
        )
    if filters.search:
        pattern = f"%{_escape_like(filters.search)}%"
        query = query.filter(
            or_(
                Job.title.ilike(pattern, escape="\\"),
                Job.description.ilike(pattern, escape="\\"),
            )
        )

    total = query.count()

    if filters.sort_by == "distance" and geo:
        key = distance
    elif filters.sort_by == "price":
        key = Job.price
    else:
        key = Job.created_at
    if filters.sort_by == "distance" and not geo:
        descending = True
    elif filters.sort_order is None:
        # Nearest first, newest or most expensive first.
        descending = filters.sort_by != "distance"
    else:
        descending = filters.sort_order == "desc"
    query = query.order_by(key.desc() if descending else key.asc(), Job.created_at.desc(), Job.id)

    rows = query.offset((page - 1) * limit).limit(limit).all()
    if geo:
        results = [(job, dist) for job, dist in rows]
    else:
        results = [(job, None) for job in rows]

    return JobPage(results=results, meta=PageMeta.build(page, limit, total))
