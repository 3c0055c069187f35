from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.dependencies import Actor, get_current_actor
from marketplace.models.enums import JobStatus
from marketplace.models.job import Job
from marketplace.schemas.common import MessageResponse
from marketplace.schemas.job import (
    JobComplete,
    JobCreate,
    JobListResponse,
    JobResponse,
    JobUpdate,
    LocationResponse,
    ReviewCreate,
)
from marketplace.services import job_service, lifecycle
from marketplace.services.job_service import JobSearchFilters

router = APIRouter(prefix="/jobs", tags=["jobs"])


def job_to_response(
    job: Job, applications_count: int | None = None, distance_km: float | None = None
) -> JobResponse:
    return JobResponse(
        id=job.id,
        poster_id=job.poster_id,
        worker_id=job.worker_id,
        title=job.title,
        description=job.description,
        category=job.category,
        location=LocationResponse(
            address=job.location_address,
            latitude=job.location_lat,
            longitude=job.location_lng,
            city=job.location_city,
            state=job.location_state,
            zip_code=job.location_zip,
        ),
        price=job.price,
        price_type=job.price_type,
        urgency=job.urgency,
        estimated_duration_hours=job.estimated_duration_hours,
        scheduled_start=job.scheduled_start,
        actual_start=job.actual_start,
        actual_end=job.actual_end,
        status=job.status,
        completion_notes=job.completion_notes,
        poster_rating=job.poster_rating,
        worker_rating=job.worker_rating,
        poster_review=job.poster_review,
        worker_review=job.worker_review,
        required_skills=job.required_skills,
        created_at=job.created_at,
        updated_at=job.updated_at,
        applications_count=applications_count,
        distance_km=round(distance_km, 3) if distance_km is not None else None,
    )


@router.get("", response_model=JobListResponse)
async def search_jobs(
    category: str | None = None,
    status: JobStatus | None = None,
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    skills: str | None = Query(None, description="Comma-separated skill names"),
    search: str | None = None,
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    radius: float | None = Query(None, gt=0),
    poster_id: str | None = None,
    worker_id: str | None = None,
    sort_by: Literal["created_at", "price", "distance"] = "created_at",
    sort_order: Literal["asc", "desc"] | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1),
    db: Session = Depends(get_db),
):
    filters = JobSearchFilters(
        category=category,
        status=status,
        min_price=min_price,
        max_price=max_price,
        skills=skills.split(",") if skills else [],
        search=search,
        latitude=lat,
        longitude=lng,
        radius_km=radius,
        poster_id=poster_id,
        worker_id=worker_id,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    result = job_service.search_jobs(db, filters)
    return JobListResponse(
        jobs=[job_to_response(job, distance_km=distance) for job, distance in result.results],
        meta=result.meta,
    )


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(
    req: JobCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    job = job_service.create_job(db, actor, req)
    return job_to_response(job, applications_count=0)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    return job_to_response(job, applications_count=job_service.count_applications(db, job.id))


@router.put("/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: str,
    req: JobUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    job = job_service.update_job(db, actor, job_id, req.model_dump(exclude_unset=True))
    return job_to_response(job, applications_count=job_service.count_applications(db, job.id))


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    job_service.delete_job(db, actor, job_id)
    return {"message": "Job deleted"}


@router.post("/{job_id}/start", response_model=JobResponse)
async def start_job(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return job_to_response(lifecycle.start_job(db, actor, job_id))


@router.post("/{job_id}/complete", response_model=JobResponse)
async def complete_job(
    job_id: str,
    req: JobComplete | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    notes = req.completion_notes if req else None
    return job_to_response(lifecycle.complete_job(db, actor, job_id, notes))


@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return job_to_response(lifecycle.cancel_job(db, actor, job_id))


@router.post("/{job_id}/dispute", response_model=JobResponse)
async def dispute_job(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return job_to_response(lifecycle.dispute_job(db, actor, job_id))


@router.post("/{job_id}/reviews", response_model=JobResponse)
async def review_job(
    job_id: str,
    req: ReviewCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return job_to_response(lifecycle.review_job(db, actor, job_id, req.rating, req.review))
