from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from jobly.core.security import require_admin
from jobly.schemas.common import DeletedOut
from jobly.schemas.companies import CompanyOut
from jobly.schemas.jobs import (
    JobDetailEnvelope,
    JobDetailOut,
    JobEnvelope,
    JobListItemOut,
    JobListOut,
    JobNewRequest,
    JobOut,
    JobSearchParams,
    JobUpdateRequest,
)
from jobly.services.repository import (
    JOB_IMMUTABLE_FIELDS,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.post(
    "",
    response_model=JobEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_job(payload: JobNewRequest, repository=Depends(get_repository)) -> JobEnvelope:
    try:
        row = await repository.create_job(
            title=payload.title,
            salary=payload.salary,
            equity=payload.equity,
            company_handle=payload.company_handle,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return JobEnvelope(job=JobOut(**row))


@router.get("", response_model=JobListOut)
async def list_jobs(request: Request, repository=Depends(get_repository)) -> JobListOut:
    params = JobSearchParams.model_validate(dict(request.query_params))
    try:
        rows = await repository.find_jobs(
            title=params.title,
            min_salary=params.min_salary,
            has_equity=params.has_equity,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return JobListOut(jobs=[JobListItemOut(**row) for row in rows])


@router.get("/{job_id}", response_model=JobDetailEnvelope)
async def get_job(job_id: int, repository=Depends(get_repository)) -> JobDetailEnvelope:
    try:
        row = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    company = row.get("company")
    return JobDetailEnvelope(
        job=JobDetailOut(
            id=row["id"],
            title=row["title"],
            salary=row["salary"],
            equity=row["equity"],
            company=CompanyOut(**company) if company else None,
        )
    )


@router.patch("/{job_id}", response_model=JobEnvelope, dependencies=[Depends(require_admin)])
async def patch_job(
    job_id: int,
    payload: dict[str, Any] = Body(...),
    repository=Depends(get_repository),
) -> JobEnvelope:
    immutable = sorted(JOB_IMMUTABLE_FIELDS.intersection(payload))
    if immutable:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"job fields cannot be updated: {', '.join(immutable)}",
        )

    changes = JobUpdateRequest.model_validate(payload).model_dump(exclude_unset=True, by_alias=True)
    try:
        row = await repository.update_job(job_id, changes)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return JobEnvelope(job=JobOut(**row))


@router.delete(
    "/{job_id}",
    response_model=DeletedOut,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin)],
)
async def delete_job(job_id: int, repository=Depends(get_repository)) -> DeletedOut:
    try:
        await repository.remove_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return DeletedOut(deleted=job_id)
