from fastapi import APIRouter, Depends, HTTPException, status

from jobly.core.security import create_token
from jobly.schemas.auth import RegisterRequest, TokenOut, TokenRequest
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryUnauthorizedError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.post("/token", response_model=TokenOut)
async def issue_token(payload: TokenRequest, repository=Depends(get_repository)) -> TokenOut:
    try:
        user = await repository.authenticate_user(payload.username, payload.password)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryUnauthorizedError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    return TokenOut(token=create_token(user))


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, repository=Depends(get_repository)) -> TokenOut:
    try:
        user = await repository.register_user(
            username=payload.username,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            is_admin=False,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return TokenOut(token=create_token(user))
