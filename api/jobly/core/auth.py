from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class Principal:
    username: str
    is_admin: bool = False

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Principal | None":
        username = claims.get("username")
        if not isinstance(username, str) or not username:
            return None
        return cls(username=username, is_admin=claims.get("isAdmin") is True)


def is_authenticated(principal: Principal | None) -> bool:
    return principal is not None


def is_admin(principal: Principal | None) -> bool:
    return principal is not None and principal.is_admin


def is_admin_or_self(principal: Principal | None, username: str) -> bool:
    if principal is None:
        return False
    return principal.is_admin or principal.username == username


def parse_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None
