from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.dependencies import Actor, get_current_actor
from marketplace.models.application import Application
from marketplace.models.enums import ApplicationStatus
from marketplace.schemas.application import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
)
from marketplace.services import application_service, lifecycle

router = APIRouter(prefix="/applications", tags=["applications"])


def _application_to_response(application: Application) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        job_id=application.job_id,
        worker_id=application.worker_id,
        message=application.message,
        proposed_price=application.proposed_price,
        estimated_completion_time=application.estimated_completion_time,
        status=application.status,
        applied_at=application.applied_at,
        responded_at=application.responded_at,
    )


@router.get("", response_model=ApplicationListResponse)
async def list_my_applications(
    role: Literal["worker", "poster"] | None = None,
    status: ApplicationStatus | None = None,
    job_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    applications, meta = application_service.list_my_applications(
        db, actor, role=role, status=status, job_id=job_id, page=page, limit=limit
    )
    return ApplicationListResponse(
        applications=[_application_to_response(a) for a in applications],
        meta=meta,
    )


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _application_to_response(application_service.get_application(db, actor, application_id))


@router.put("/{application_id}/accept", response_model=ApplicationResponse)
async def accept_application(
    application_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _application_to_response(lifecycle.accept_application(db, actor, application_id))


@router.put("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _application_to_response(lifecycle.reject_application(db, actor, application_id))


@router.put("/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _application_to_response(lifecycle.withdraw_application(db, actor, application_id))


# Job-scoped application endpoints
job_applications_router = APIRouter(
    prefix="/jobs/{job_id}/applications",
    tags=["applications"],
)


@job_applications_router.post("", response_model=ApplicationResponse, status_code=201)
async def apply_to_job(
    job_id: str,
    req: ApplicationCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _application_to_response(application_service.apply_to_job(db, actor, job_id, req))


@job_applications_router.get("", response_model=list[ApplicationResponse])
async def list_job_applications(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return [
        _application_to_response(a)
        for a in application_service.list_job_applications(db, actor, job_id)
    ]
