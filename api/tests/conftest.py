from __future__ import annotations

import os

os.environ.setdefault("JOBLY_OTEL_ENABLED", "false")
os.environ.setdefault("JOBLY_BCRYPT_WORK_FACTOR", "4")
os.environ.setdefault("JOBLY_SECRET_KEY", "test-secret")

from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobly.core.config import get_settings
from jobly.core.security import create_token
from jobly.main import app
from jobly.services.repository import (
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnauthorizedError,
    RepositoryValidationError,
    get_repository,
)
from jobly.services.sql import sql_for_partial_update


class FakeJoblyRepository:
    """In-memory stand-in for PostgresRepository used by the route tests."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.companies: dict[str, dict[str, Any]] = {
            "c1": {
                "handle": "c1",
                "name": "C1",
                "description": "Desc1",
                "num_employees": 1,
                "logo_url": "http://c1.img",
            },
            "c2": {
                "handle": "c2",
                "name": "C2",
                "description": "Desc2",
                "num_employees": 200,
                "logo_url": "http://c2.img",
            },
            "c3": {
                "handle": "c3",
                "name": "C3",
                "description": "Desc3",
                "num_employees": 3000,
                "logo_url": None,
            },
        }
        self.jobs: dict[int, dict[str, Any]] = {
            1: {"id": 1, "title": "testjob1", "salary": 111, "equity": "0.1", "company_handle": "c1"},
            2: {"id": 2, "title": "testjob2", "salary": 222, "equity": "0", "company_handle": "c1"},
            3: {"id": 3, "title": "testjob3", "salary": 333, "equity": None, "company_handle": "c2"},
        }
        self.users: dict[str, dict[str, Any]] = {
            "admin": {
                "username": "admin",
                "password": "adminpass",
                "first_name": "Ada",
                "last_name": "Admin",
                "email": "admin@example.com",
                "is_admin": True,
            },
            "u1": {
                "username": "u1",
                "password": "password1",
                "first_name": "U1F",
                "last_name": "U1L",
                "email": "user1@example.com",
                "is_admin": False,
            },
            "u2": {
                "username": "u2",
                "password": "password2",
                "first_name": "U2F",
                "last_name": "U2L",
                "email": "user2@example.com",
                "is_admin": False,
            },
        }
        self.applications: set[tuple[str, int]] = {("u1", 1)}
        self._next_job_id = 4

    async def create_company(self, **company: Any) -> dict[str, Any]:
        self.calls.append("create_company")
        if company["handle"] in self.companies:
            raise RepositoryConflictError(f"duplicate company: {company['handle']}")
        self.companies[company["handle"]] = dict(company)
        return dict(company)

    async def find_companies(self, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        self.calls.append("find_companies")
        filters = dict(filters or {})
        unknown = set(filters) - {"name", "minEmployees", "maxEmployees"}
        if unknown:
            raise RepositoryValidationError(f"invalid filter keys: {', '.join(sorted(unknown))}")
        min_employees = int(filters["minEmployees"]) if "minEmployees" in filters else None
        max_employees = int(filters["maxEmployees"]) if "maxEmployees" in filters else None
        if min_employees is not None and max_employees is not None and min_employees > max_employees:
            raise RepositoryValidationError("minEmployees cannot be greater than maxEmployees")

        rows = list(self.companies.values())
        if "name" in filters:
            rows = [row for row in rows if filters["name"].lower() in row["name"].lower()]
        if min_employees is not None:
            rows = [row for row in rows if (row["num_employees"] or 0) >= min_employees]
        if max_employees is not None:
            rows = [row for row in rows if (row["num_employees"] or 0) <= max_employees]
        return sorted((dict(row) for row in rows), key=lambda row: row["name"])

    async def get_company(self, handle: str) -> dict[str, Any]:
        self.calls.append("get_company")
        company = self.companies.get(handle)
        if not company:
            raise RepositoryNotFoundError(f"no company: {handle}")
        jobs = [
            {key: job[key] for key in ("id", "title", "salary", "equity")}
            for job in self.jobs.values()
            if job["company_handle"] == handle
        ]
        return {**company, "jobs": jobs}

    async def update_company(self, handle: str, data: dict[str, Any]) -> dict[str, Any]:
        self.calls.append("update_company")
        sql_for_partial_update(data, {})
        company = self.companies.get(handle)
        if not company:
            raise RepositoryNotFoundError(f"no company: {handle}")
        if any(other["name"] == data.get("name") for key, other in self.companies.items() if key != handle):
            raise RepositoryConflictError(f"duplicate company name: {data['name']}")
        columns = {"numEmployees": "num_employees", "logoUrl": "logo_url"}
        for field, value in data.items():
            company[columns.get(field, field)] = value
        return dict(company)

    async def remove_company(self, handle: str) -> None:
        self.calls.append("remove_company")
        if self.companies.pop(handle, None) is None:
            raise RepositoryNotFoundError(f"no company: {handle}")

    async def create_job(self, *, title: str, company_handle: str, salary: int | None, equity: str | None) -> dict[str, Any]:
        self.calls.append("create_job")
        if company_handle not in self.companies:
            raise RepositoryValidationError(f"no company: {company_handle}")
        job = {
            "id": self._next_job_id,
            "title": title,
            "salary": salary,
            "equity": equity,
            "company_handle": company_handle,
        }
        self.jobs[job["id"]] = job
        self._next_job_id += 1
        return dict(job)

    async def find_jobs(
        self,
        *,
        title: str | None = None,
        min_salary: int | None = None,
        has_equity: bool | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append("find_jobs")
        rows = list(self.jobs.values())
        if title:
            rows = [row for row in rows if title.lower() in row["title"].lower()]
        if min_salary:
            rows = [row for row in rows if row["salary"] is not None and row["salary"] >= min_salary]
        if has_equity:
            rows = [row for row in rows if row["equity"] is not None and float(row["equity"]) > 0]
        return [
            {**row, "company_name": self.companies[row["company_handle"]]["name"]}
            for row in sorted(rows, key=lambda row: row["title"])
        ]

    async def get_job(self, job_id: int) -> dict[str, Any]:
        self.calls.append("get_job")
        job = self.jobs.get(job_id)
        if not job:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        detail = {key: job[key] for key in ("id", "title", "salary", "equity")}
        detail["company"] = dict(self.companies[job["company_handle"]])
        return detail

    async def update_job(self, job_id: int, data: dict[str, Any]) -> dict[str, Any]:
        self.calls.append("update_job")
        if {"id", "companyHandle", "company_handle"} & set(data):
            raise RepositoryForbiddenError("job fields cannot be updated")
        sql_for_partial_update(data, {})
        job = self.jobs.get(job_id)
        if not job:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        job.update(data)
        return dict(job)

    async def remove_job(self, job_id: int) -> None:
        self.calls.append("remove_job")
        if self.jobs.pop(job_id, None) is None:
            raise RepositoryNotFoundError(f"no job: {job_id}")

    async def authenticate_user(self, username: str, password: str) -> dict[str, Any]:
        self.calls.append("authenticate_user")
        user = self.users.get(username)
        if not user or user["password"] != password:
            raise RepositoryUnauthorizedError("invalid username/password")
        return self._public_user(user)

    async def register_user(self, **user: Any) -> dict[str, Any]:
        self.calls.append("register_user")
        if user["username"] in self.users:
            raise RepositoryConflictError(f"duplicate username: {user['username']}")
        self.users[user["username"]] = dict(user)
        return self._public_user(user)

    async def find_users(self) -> list[dict[str, Any]]:
        self.calls.append("find_users")
        return [self._public_user(self.users[username]) for username in sorted(self.users)]

    async def get_user(self, username: str) -> dict[str, Any]:
        self.calls.append("get_user")
        user = self.users.get(username)
        if not user:
            raise RepositoryNotFoundError(f"no user: {username}")
        jobs_applied = sorted(job_id for applicant, job_id in self.applications if applicant == username)
        return {**self._public_user(user), "jobs_applied": jobs_applied}

    async def update_user(self, username: str, data: dict[str, Any]) -> dict[str, Any]:
        self.calls.append("update_user")
        sql_for_partial_update(data, {})
        user = self.users.get(username)
        if not user:
            raise RepositoryNotFoundError(f"no user: {username}")
        columns = {"firstName": "first_name", "lastName": "last_name", "isAdmin": "is_admin"}
        for field, value in data.items():
            user[columns.get(field, field)] = value
        return self._public_user(user)

    async def remove_user(self, username: str) -> None:
        self.calls.append("remove_user")
        if self.users.pop(username, None) is None:
            raise RepositoryNotFoundError(f"no user: {username}")

    async def apply_to_job(self, username: str, job_id: int) -> dict[str, Any]:
        self.calls.append("apply_to_job")
        if username not in self.users:
            raise RepositoryNotFoundError(f"no user: {username}")
        if job_id not in self.jobs:
            raise RepositoryNotFoundError(f"no job: {job_id}")
        self.applications.add((username, job_id))
        return {"username": username, "job_id": job_id}

    async def ping(self) -> None:
        self.calls.append("ping")

    async def close(self) -> None:
        return None

    @staticmethod
    def _public_user(user: dict[str, Any]) -> dict[str, Any]:
        return {key: user[key] for key in ("username", "first_name", "last_name", "email", "is_admin")}


@pytest.fixture
def fake_repo() -> FakeJoblyRepository:
    return FakeJoblyRepository()


@pytest.fixture
def api_client(fake_repo: FakeJoblyRepository) -> TestClient:
    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_token() -> str:
    return create_token({"username": "admin", "is_admin": True}, settings=get_settings())


@pytest.fixture
def u1_token() -> str:
    return create_token({"username": "u1", "is_admin": False}, settings=get_settings())


@pytest.fixture
def u2_token() -> str:
    return create_token({"username": "u2", "is_admin": False}, settings=get_settings())