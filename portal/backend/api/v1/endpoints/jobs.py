"""
Background Job API Endpoints.

Queue, inspect, cancel and retry jobs of the acting organization.
"""

from fastapi import APIRouter, Query

from portal.backend.core.dependencies import CurrentAuth, DbSession, StaffAuth
from portal.backend.schemas.base import ApiResponse, JobAccepted
from portal.backend.schemas.job import JobCreate, JobResponse, JobStats
from portal.backend.services.job import JobService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[JobResponse]], summary="List jobs")
async def list_jobs(
    auth: CurrentAuth,
    db: DbSession,
    status: str | None = Query(default=None),
    type: str | None = Query(default=None, description="Job type"),
    limit: int = Query(default=50, ge=1, le=200),
) -> ApiResponse[list[JobResponse]]:
    jobs = await JobService(db).list_jobs(auth.require_org(), status=status, job_type=type, limit=limit)
    return ApiResponse(data=[JobResponse.model_validate(j) for j in jobs])


@router.post(
    "",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Queue a job",
    description="The type must be a registered job handler; unknown types return 400.",
)
async def create_job(data: JobCreate, auth: StaffAuth, db: DbSession) -> ApiResponse[JobAccepted]:
    job = await JobService(db).create_job(auth.require_org(), auth.contact_id, data)
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))


@router.get("/stats", response_model=ApiResponse[JobStats], summary="Job counts")
async def job_stats(auth: CurrentAuth, db: DbSession) -> ApiResponse[JobStats]:
    stats = await JobService(db).stats(auth.require_org())
    return ApiResponse(data=JobStats(**stats))


@router.get("/{job_id}", response_model=ApiResponse[JobResponse], summary="Get a job")
async def get_job(job_id: str, auth: CurrentAuth, db: DbSession) -> ApiResponse[JobResponse]:
    job = await JobService(db).get_job(auth.require_org(), job_id)
    return ApiResponse(data=JobResponse.model_validate(job))


@router.post("/{job_id}/cancel", response_model=ApiResponse[JobResponse], summary="Cancel a pending job")
async def cancel_job(job_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobResponse]:
    job = await JobService(db).cancel_job(auth.require_org(), job_id)
    return ApiResponse(data=JobResponse.model_validate(job))


@router.post(
    "/{job_id}/retry",
    response_model=ApiResponse[JobAccepted],
    status_code=202,
    summary="Retry a failed or cancelled job",
    description="Creates a new job with the same type and params; retry_of points at the original.",
)
async def retry_job(job_id: str, auth: StaffAuth, db: DbSession) -> ApiResponse[JobAccepted]:
    job = await JobService(db).retry_job(auth.require_org(), job_id, auth.contact_id)
    return ApiResponse(data=JobAccepted(job_id=job.id, status=job.status))
