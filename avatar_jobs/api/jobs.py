from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from avatar_jobs.api.deps import get_current_user_id, get_engine, get_status_service
from avatar_jobs.models.job import GenerationJob
from avatar_jobs.services.job_status import JobStatusService
from avatar_jobs.services.reconciliation import ReconciliationEngine

router = APIRouter(prefix="/jobs", tags=["jobs"])


class JobCreateRequest(BaseModel):
    payload_ref: str
    title: str | None = None


class JobCreateResponse(BaseModel):
    ok: bool
    job_id: str
    external_correlation_id: str | None
    status: str


class JobGetResponse(BaseModel):
    ok: bool
    job_id: str
    title: str | None
    status: str
    progress: int
    result: dict[str, Any] | None
    error_detail: str | None
    created_at: str | None
    updated_at: str | None
    completed_at: str | None


def _to_response(job: GenerationJob) -> JobGetResponse:
    return JobGetResponse(
        ok=True,
        job_id=job.id,
        title=job.title,
        status=job.status,
        progress=job.progress,
        result=job.result if job.status == "completed" else None,
        error_detail=job.error_detail if job.status == "failed" else None,
        created_at=job.created_at.isoformat() if job.created_at else None,
        updated_at=job.updated_at.isoformat() if job.updated_at else None,
        completed_at=job.completed_at.isoformat() if job.completed_at else None,
    )


@router.post("", response_model=JobCreateResponse)
def create_job(
    req: JobCreateRequest,
    owner_id: str = Depends(get_current_user_id),
    engine: ReconciliationEngine = Depends(get_engine),
) -> JobCreateResponse:
    job = engine.submit(owner_id, req.payload_ref, title=req.title)
    return JobCreateResponse(
        ok=True,
        job_id=job.id,
        external_correlation_id=job.external_correlation_id,
        status=job.status,
    )


@router.get("")
def list_jobs(
    owner_id: str = Depends(get_current_user_id),
    service: JobStatusService = Depends(get_status_service),
    status: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    total, rows = service.list_jobs(owner_id, status=status, limit=limit, offset=offset)
    return {
        "ok": True,
        "total": total,
        "limit": limit,
        "offset": offset,
        "jobs": [_to_response(job).model_dump(exclude={"ok"}) for job in rows],
    }


@router.get("/{job_id}", response_model=JobGetResponse)
def get_job(
    job_id: str,
    requester_id: str = Depends(get_current_user_id),
    service: JobStatusService = Depends(get_status_service),
) -> JobGetResponse:
    job = service.get_status(job_id, requester_id)
    return _to_response(job)
