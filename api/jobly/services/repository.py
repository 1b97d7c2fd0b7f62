from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobly.core.config import get_settings
from jobly.core.security import hash_password, verify_password
from jobly.core.telemetry import traced
from jobly.services.errors import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnauthorizedError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from jobly.services.sql import COMPANY_COLUMNS, JOB_COLUMNS, USER_COLUMNS, sql_for_partial_update

__all__ = [
    "PostgresRepository",
    "RepositoryConflictError",
    "RepositoryError",
    "RepositoryForbiddenError",
    "RepositoryNotFoundError",
    "RepositoryUnauthorizedError",
    "RepositoryUnavailableError",
    "RepositoryValidationError",
    "get_repository",
]

logger = logging.getLogger(__name__)

COMPANY_FILTER_KEYS = {"name", "minEmployees", "maxEmployees"}
COMPANY_UPDATE_FIELDS = {"name", "description", "numEmployees", "logoUrl"}
JOB_UPDATE_FIELDS = {"title", "salary", "equity"}
JOB_IMMUTABLE_FIELDS = {"id", "companyHandle", "company_handle"}
USER_UPDATE_FIELDS = {"firstName", "lastName", "password", "email", "isAdmin"}
COMPANY_REQUIRED_FIELDS = {"name"}
JOB_REQUIRED_FIELDS = {"title"}
USER_REQUIRED_FIELDS = USER_UPDATE_FIELDS
COMPANY_NAME_CONSTRAINT = "companies_name_key"

_COMPANY_RETURNING = """
  handle,
  name,
  description,
  num_employees,
  logo_url
"""

_JOB_RETURNING = """
  id,
  title,
  salary,
  equity,
  company_handle
"""

_USER_RETURNING = """
  username,
  first_name,
  last_name,
  email,
  is_admin
"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
        bcrypt_work_factor: int = 12,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self.bcrypt_work_factor = max(4, bcrypt_work_factor)
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        pool = await self._get_pool()
        try:
            await pool.fetchval("select 1")
        except (OSError, asyncpg.PostgresError) as exc:
            raise RepositoryUnavailableError("database unavailable") from exc

    # Companies

    async def create_company(
        self,
        *,
        handle: str,
        name: str,
        description: str | None = None,
        num_employees: int | None = None,
        logo_url: str | None = None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        duplicate = await pool.fetchrow("select handle from companies where handle = $1", handle)
        if duplicate:
            raise RepositoryConflictError(f"duplicate company: {handle}")

        try:
            row = await pool.fetchrow(
                f"""
                insert into companies (handle, name, description, num_employees, logo_url)
                values ($1, $2, $3, $4, $5)
                returning {_COMPANY_RETURNING}
                """,
                handle,
                name,
                description,
                num_employees,
                logo_url,
            )
        except pg_exc.UniqueViolationError as exc:
            if exc.constraint_name == COMPANY_NAME_CONSTRAINT:
                raise RepositoryConflictError(f"duplicate company name: {name}") from exc
            raise RepositoryConflictError(f"duplicate company: {handle}") from exc

        logger.info("company created handle=%s", handle)
        return self._company_row_to_dict(row)

    async def find_companies(self, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        filters = dict(filters or {})
        unknown_keys = sorted(set(filters) - COMPANY_FILTER_KEYS)
        if unknown_keys:
            raise RepositoryValidationError(
                f"invalid filter keys ({len(unknown_keys)}): {', '.join(unknown_keys)}",
            )

        min_employees = self._coerce_filter_int(filters.get("minEmployees"), field="minEmployees")
        max_employees = self._coerce_filter_int(filters.get("maxEmployees"), field="maxEmployees")
        if min_employees is not None and max_employees is not None and min_employees > max_employees:
            raise RepositoryValidationError("minEmployees cannot be greater than maxEmployees")

        conditions: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        normalized_name = self._coerce_text(filters.get("name"))
        if normalized_name:
            conditions.append(f"name ilike {bind(f'%{normalized_name}%')}")
        if min_employees is not None:
            conditions.append(f"num_employees >= {bind(min_employees)}")
        if max_employees is not None:
            conditions.append(f"num_employees <= {bind(max_employees)}")

        where_sql = f"where {' and '.join(conditions)}" if conditions else ""

        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_COMPANY_RETURNING}
            from companies
            {where_sql}
            order by name
            """,
            *params,
        )
        return [self._company_row_to_dict(row) for row in rows]

    async def get_company(self, handle: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {_COMPANY_RETURNING}
            from companies
            where handle = $1
            """,
            handle,
        )
        if not row:
            raise RepositoryNotFoundError(f"no company: {handle}")

        job_rows = await pool.fetch(
            """
            select id, title, salary, equity
            from jobs
            where company_handle = $1
            order by id
            """,
            handle,
        )
        company = self._company_row_to_dict(row)
        company["jobs"] = [
            {
                "id": job_row["id"],
                "title": job_row["title"],
                "salary": job_row["salary"],
                "equity": self._equity_to_text(job_row["equity"]),
            }
            for job_row in job_rows
        ]
        return company

    async def update_company(self, handle: str, data: Mapping[str, Any]) -> dict[str, Any]:
        self._reject_unknown_fields(data, allowed=COMPANY_UPDATE_FIELDS, entity="company")
        self._reject_null_fields(data, required=COMPANY_REQUIRED_FIELDS)
        set_sql, values = sql_for_partial_update(data, COMPANY_COLUMNS)
        handle_token = f"${len(values) + 1}"

        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update companies
                set {set_sql}
                where handle = {handle_token}
                returning {_COMPANY_RETURNING}
                """,
                *values,
                handle,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"duplicate company name: {data.get('name')}") from exc
        if not row:
            raise RepositoryNotFoundError(f"no company: {handle}")
        return self._company_row_to_dict(row)

    async def remove_company(self, handle: str) -> None:
        pool = await self._get_pool()
        row = await pool.fetchrow("delete from companies where handle = $1 returning handle", handle)
        if not row:
            raise RepositoryNotFoundError(f"no company: {handle}")
        logger.info("company removed handle=%s", handle)

    # Jobs

    async def create_job(
        self,
        *,
        title: str,
        company_handle: str,
        salary: int | None = None,
        equity: Any = None,
    ) -> dict[str, Any]:
        equity_value = self._coerce_equity(equity)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into jobs (title, salary, equity, company_handle)
                values ($1, $2, $3, $4)
                returning {_JOB_RETURNING}
                """,
                title,
                salary,
                equity_value,
                company_handle,
            )
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryValidationError(f"no company: {company_handle}") from exc

        logger.info("job created id=%s company_handle=%s", row["id"], company_handle)
        return self._job_row_to_dict(row)

    async def find_jobs(
        self,
        *,
        title: str | None = None,
        min_salary: int | None = None,
        has_equity: bool | None = None,
    ) -> list[dict[str, Any]]:
        conditions: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        normalized_title = self._coerce_text(title)
        if normalized_title:
            conditions.append(f"j.title ilike {bind(f'%{normalized_title}%')}")
        if min_salary:
            conditions.append(f"j.salary >= {bind(min_salary)}")
        if has_equity:
            conditions.append("j.equity > 0")

        where_sql = f"where {' and '.join(conditions)}" if conditions else ""

        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              j.id,
              j.title,
              j.salary,
              j.equity,
              j.company_handle,
              c.name as company_name
            from jobs j
            left join companies c on c.handle = j.company_handle
            {where_sql}
            order by j.title, j.id
            """,
            *params,
        )
        return [
            {
                **self._job_row_to_dict(row),
                "company_name": row["company_name"],
            }
            for row in rows
        ]

    async def get_job(self, job_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {_JOB_RETURNING}
            from jobs
            where id = $1
            """,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"no job: {job_id}")

        company_row = await pool.fetchrow(
            f"""
            select {_COMPANY_RETURNING}
            from companies
            where handle = $1
            """,
            row["company_handle"],
        )
        job = self._job_row_to_dict(row)
        job.pop("company_handle")
        job["company"] = self._company_row_to_dict(company_row) if company_row else None
        return job

    async def update_job(self, job_id: int, data: Mapping[str, Any]) -> dict[str, Any]:
        immutable = sorted(JOB_IMMUTABLE_FIELDS.intersection(data))
        if immutable:
            raise RepositoryForbiddenError(f"job fields cannot be updated: {', '.join(immutable)}")
        self._reject_unknown_fields(data, allowed=JOB_UPDATE_FIELDS, entity="job")
        self._reject_null_fields(data, required=JOB_REQUIRED_FIELDS)

        changes = dict(data)
        if "equity" in changes:
            changes["equity"] = self._coerce_equity(changes["equity"])
        set_sql, values = sql_for_partial_update(changes, JOB_COLUMNS)
        id_token = f"${len(values) + 1}"

        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            update jobs
            set {set_sql}
            where id = {id_token}
            returning {_JOB_RETURNING}
            """,
            *values,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        return self._job_row_to_dict(row)

    async def remove_job(self, job_id: int) -> None:
        pool = await self._get_pool()
        row = await pool.fetchrow("delete from jobs where id = $1 returning id", job_id)
        if not row:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        logger.info("job removed id=%s", job_id)

    # Users

    async def authenticate_user(self, username: str, password: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select password, {_USER_RETURNING}
            from users
            where username = $1
            """,
            username,
        )
        if row:
            with traced("jobly.password.verify"):
                is_valid = await asyncio.to_thread(verify_password, password, row["password"])
            if is_valid:
                return self._user_row_to_dict(row)

        logger.info("authentication failed username=%s", username)
        raise RepositoryUnauthorizedError("invalid username/password")

    async def register_user(
        self,
        *,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        email: str,
        is_admin: bool = False,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        duplicate = await pool.fetchrow("select username from users where username = $1", username)
        if duplicate:
            raise RepositoryConflictError(f"duplicate username: {username}")

        hashed_password = await self._hash_password(password)
        try:
            row = await pool.fetchrow(
                f"""
                insert into users (username, password, first_name, last_name, email, is_admin)
                values ($1, $2, $3, $4, $5, $6)
                returning {_USER_RETURNING}
                """,
                username,
                hashed_password,
                first_name,
                last_name,
                email,
                bool(is_admin),
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"duplicate username: {username}") from exc

        logger.info("user registered username=%s is_admin=%s", username, bool(is_admin))
        return self._user_row_to_dict(row)

    async def find_users(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_USER_RETURNING}
            from users
            order by username
            """
        )
        return [self._user_row_to_dict(row) for row in rows]

    async def get_user(self, username: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select {_USER_RETURNING}
            from users
            where username = $1
            """,
            username,
        )
        if not row:
            raise RepositoryNotFoundError(f"no user: {username}")

        application_rows = await pool.fetch(
            "select job_id from applications where username = $1 order by job_id",
            username,
        )
        user = self._user_row_to_dict(row)
        user["jobs_applied"] = [application_row["job_id"] for application_row in application_rows]
        return user

    async def update_user(self, username: str, data: Mapping[str, Any]) -> dict[str, Any]:
        """Apply a partial update to a user.

        A new password is hashed before it is written. Callers decide whether
        the requester may change ``isAdmin``.
        """
        self._reject_unknown_fields(data, allowed=USER_UPDATE_FIELDS, entity="user")
        self._reject_null_fields(data, required=USER_REQUIRED_FIELDS)

        changes = dict(data)
        if "password" in changes:
            changes["password"] = await self._hash_password(changes["password"])
        set_sql, values = sql_for_partial_update(changes, USER_COLUMNS)
        username_token = f"${len(values) + 1}"

        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            update users
            set {set_sql}
            where username = {username_token}
            returning {_USER_RETURNING}
            """,
            *values,
            username,
        )
        if not row:
            raise RepositoryNotFoundError(f"no user: {username}")
        return self._user_row_to_dict(row)

    async def remove_user(self, username: str) -> None:
        pool = await self._get_pool()
        row = await pool.fetchrow("delete from users where username = $1 returning username", username)
        if not row:
            raise RepositoryNotFoundError(f"no user: {username}")
        logger.info("user removed username=%s", username)

    async def apply_to_job(self, username: str, job_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        user_row = await pool.fetchrow("select username from users where username = $1", username)
        if not user_row:
            raise RepositoryNotFoundError(f"no user: {username}")

        job_row = await pool.fetchrow("select id from jobs where id = $1", job_id)
        if not job_row:
            raise RepositoryNotFoundError(f"no job: {job_id}")

        row = await pool.fetchrow(
            """
            insert into applications (username, job_id)
            values ($1, $2)
            on conflict (username, job_id) do nothing
            returning username, job_id
            """,
            user_row["username"],
            job_row["id"],
        )
        if not row:
            logger.info("application already exists username=%s job_id=%s", username, job_id)
            return {"username": user_row["username"], "job_id": job_row["id"]}
        return {"username": row["username"], "job_id": row["job_id"]}

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JOBLY_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    async def _hash_password(self, password: str) -> str:
        with traced("jobly.password.hash", rounds=self.bcrypt_work_factor):
            return await asyncio.to_thread(hash_password, password, rounds=self.bcrypt_work_factor)

    @staticmethod
    def _reject_unknown_fields(data: Mapping[str, Any], *, allowed: set[str], entity: str) -> None:
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise RepositoryValidationError(f"unknown {entity} fields: {', '.join(unknown)}")

    @staticmethod
    def _reject_null_fields(data: Mapping[str, Any], *, required: set[str]) -> None:
        nulls = sorted(field for field in required.intersection(data) if data[field] is None)
        if nulls:
            raise RepositoryValidationError(f"fields may not be null: {', '.join(nulls)}")

    @classmethod
    def _company_row_to_dict(cls, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "handle": row["handle"],
            "name": row["name"],
            "description": row["description"],
            "num_employees": row["num_employees"],
            "logo_url": row["logo_url"],
        }

    @classmethod
    def _job_row_to_dict(cls, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "salary": row["salary"],
            "equity": cls._equity_to_text(row["equity"]),
            "company_handle": row["company_handle"],
        }

    @staticmethod
    def _user_row_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "username": row["username"],
            "first_name": row["first_name"],
            "last_name": row["last_name"],
            "email": row["email"],
            "is_admin": bool(row["is_admin"]),
        }

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)

    @staticmethod
    def _coerce_filter_int(value: Any, *, field: str) -> int | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(value, bool):
            raise RepositoryValidationError(f"{field} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise RepositoryValidationError(f"{field} must be an integer") from exc

    @staticmethod
    def _coerce_equity(value: Any) -> Decimal | None:
        if value is None:
            return None
        try:
            equity = Decimal(str(value))
        except InvalidOperation as exc:
            raise RepositoryValidationError("equity must be a decimal number") from exc
        if not equity.is_finite() or equity < 0 or equity > 1:
            raise RepositoryValidationError("equity must be between 0 and 1")
        return equity

    @staticmethod
    def _equity_to_text(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
        bcrypt_work_factor=settings.bcrypt_work_factor,
    )
