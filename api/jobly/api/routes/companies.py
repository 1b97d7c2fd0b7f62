from fastapi import APIRouter, Depends, HTTPException, Request, status

from jobly.core.security import require_admin
from jobly.schemas.common import DeletedOut
from jobly.schemas.companies import (
    CompanyDetailEnvelope,
    CompanyDetailOut,
    CompanyEnvelope,
    CompanyListOut,
    CompanyNewRequest,
    CompanyOut,
    CompanyUpdateRequest,
)
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.post(
    "",
    response_model=CompanyEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_company(payload: CompanyNewRequest, repository=Depends(get_repository)) -> CompanyEnvelope:
    try:
        row = await repository.create_company(
            handle=payload.handle,
            name=payload.name,
            description=payload.description,
            num_employees=payload.num_employees,
            logo_url=payload.logo_url,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return CompanyEnvelope(company=CompanyOut(**row))


@router.get("", response_model=CompanyListOut)
async def list_companies(request: Request, repository=Depends(get_repository)) -> CompanyListOut:
    # Query values arrive as text; the repository validates keys and coerces numbers.
    filters = dict(request.query_params)
    try:
        rows = await repository.find_companies(filters)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return CompanyListOut(companies=[CompanyOut(**row) for row in rows])


@router.get("/{handle}", response_model=CompanyDetailEnvelope)
async def get_company(handle: str, repository=Depends(get_repository)) -> CompanyDetailEnvelope:
    try:
        row = await repository.get_company(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return CompanyDetailEnvelope(company=CompanyDetailOut(**row))


@router.patch("/{handle}", response_model=CompanyEnvelope, dependencies=[Depends(require_admin)])
async def patch_company(
    handle: str,
    payload: CompanyUpdateRequest,
    repository=Depends(get_repository),
) -> CompanyEnvelope:
    try:
        row = await repository.update_company(handle, payload.model_dump(exclude_unset=True, by_alias=True))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except (RepositoryValidationError, RepositoryConflictError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return CompanyEnvelope(company=CompanyOut(**row))


@router.delete("/{handle}", response_model=DeletedOut, dependencies=[Depends(require_admin)])
async def delete_company(handle: str, repository=Depends(get_repository)) -> DeletedOut:
    try:
        await repository.remove_company(handle)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return DeletedOut(deleted=handle)
