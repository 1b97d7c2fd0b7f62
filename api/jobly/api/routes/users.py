from fastapi import APIRouter, Depends, HTTPException, status

from jobly.core.auth import Principal
from jobly.core.security import create_token, require_admin, require_admin_or_self
from jobly.schemas.common import DeletedOut
from jobly.schemas.users import (
    AppliedOut,
    UserCreatedOut,
    UserDetailEnvelope,
    UserDetailOut,
    UserEnvelope,
    UserListOut,
    UserNewRequest,
    UserOut,
    UserUpdateRequest,
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
    response_model=UserCreatedOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_user(payload: UserNewRequest, repository=Depends(get_repository)) -> UserCreatedOut:
    """Admin-only user creation; the new user may itself be an admin."""
    try:
        row = await repository.register_user(
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            is_admin=payload.is_admin,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return UserCreatedOut(user=UserOut(**row), token=create_token(row))


@router.post(
    "/{username}/jobs/{job_id}",
    response_model=AppliedOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_or_self)],
)
async def apply_to_job(username: str, job_id: int, repository=Depends(get_repository)) -> AppliedOut:
    try:
        application = await repository.apply_to_job(username, job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return AppliedOut(applied=application["job_id"])


@router.get("", response_model=UserListOut, dependencies=[Depends(require_admin)])
async def list_users(repository=Depends(get_repository)) -> UserListOut:
    try:
        rows = await repository.find_users()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserListOut(users=[UserOut(**row) for row in rows])


@router.get("/{username}", response_model=UserDetailEnvelope, dependencies=[Depends(require_admin_or_self)])
async def get_user(username: str, repository=Depends(get_repository)) -> UserDetailEnvelope:
    try:
        row = await repository.get_user(username)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return UserDetailEnvelope(user=UserDetailOut(**row))


@router.patch("/{username}", response_model=UserEnvelope)
async def patch_user(
    username: str,
    payload: UserUpdateRequest,
    principal: Principal = Depends(require_admin_or_self),
    repository=Depends(get_repository),
) -> UserEnvelope:
    changes = payload.model_dump(exclude_unset=True, by_alias=True)
    if "isAdmin" in changes and not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="only admins may change isAdmin")

    try:
        row = await repository.update_user(username, changes)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return UserEnvelope(user=UserOut(**row))


@router.delete(
    "/{username}",
    response_model=DeletedOut,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin_or_self)],
)
async def delete_user(username: str, repository=Depends(get_repository)) -> DeletedOut:
    try:
        await repository.remove_user(username)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return DeletedOut(deleted=username)
