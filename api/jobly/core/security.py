import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header, HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext

from jobly.core.auth import Principal, is_admin, is_admin_or_self, is_authenticated, parse_bearer_token
from jobly.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@lru_cache
def _password_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, *, rounds: int | None = None) -> str:
    rounds = rounds or get_settings().bcrypt_work_factor
    # bcrypt only reads the first 72 bytes.
    password_bytes = password.encode("utf-8")[:72]
    return _password_context(rounds).hash(password_bytes)


def verify_password(password: str, hashed_password: str) -> bool:
    password_bytes = password.encode("utf-8")[:72]
    try:
        return _password_context(get_settings().bcrypt_work_factor).verify(password_bytes, hashed_password)
    except ValueError:
        return False


def create_token(user: dict[str, Any], *, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    claims: dict[str, Any] = {
        "username": user["username"],
        "isAdmin": bool(user.get("is_admin", user.get("isAdmin", False))),
    }
    if settings.jwt_expire_minutes:
        claims["exp"] = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, *, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


async def get_optional_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal | None:
    principal: Principal | None = None
    token = parse_bearer_token(authorization)
    if token:
        try:
            principal = Principal.from_claims(decode_token(token, settings=settings))
        except JWTError:
            logger.debug("ignoring invalid bearer token path=%s", request.url.path)
    request.state.principal = principal
    return principal


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def require_authenticated(principal: Principal | None = Depends(get_optional_principal)) -> Principal:
    if not is_authenticated(principal):
        raise _unauthorized()
    return principal


async def require_admin(principal: Principal | None = Depends(get_optional_principal)) -> Principal:
    if not is_admin(principal):
        raise _unauthorized()
    return principal


async def require_admin_or_self(
    username: str,
    principal: Principal | None = Depends(get_optional_principal),
) -> Principal:
    if not is_admin_or_self(principal, username):
        raise _unauthorized()
    return principal
