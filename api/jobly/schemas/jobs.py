from pydantic import Field, field_validator

from jobly.schemas.common import ApiModel, ApiRequest, reject_null
from jobly.schemas.companies import CompanyOut

EQUITY_PATTERN = r"^(0|1(\.0+)?|0?\.[0-9]+)$"


class JobOut(ApiModel):
    id: int
    title: str
    salary: int | None = None
    equity: str | None = None
    company_handle: str


class JobListItemOut(JobOut):
    company_name: str | None = None


class JobDetailOut(ApiModel):
    id: int
    title: str
    salary: int | None = None
    equity: str | None = None
    company: CompanyOut | None = None


class JobEnvelope(ApiModel):
    job: JobOut


class JobDetailEnvelope(ApiModel):
    job: JobDetailOut


class JobListOut(ApiModel):
    jobs: list[JobListItemOut]


class JobNewRequest(ApiRequest):
    title: str = Field(min_length=1)
    salary: int | None = Field(default=None, ge=0)
    equity: str | None = Field(default=None, pattern=EQUITY_PATTERN)
    company_handle: str = Field(min_length=1, max_length=25)


class JobUpdateRequest(ApiRequest):
    title: str | None = Field(default=None, min_length=1)
    salary: int | None = Field(default=None, ge=0)
    equity: str | None = Field(default=None, pattern=EQUITY_PATTERN)

    @field_validator("title")
    @classmethod
    def title_not_null(cls, value: str | None) -> str | None:
        return reject_null(value)


class JobSearchParams(ApiRequest):
    title: str | None = Field(default=None, min_length=1)
    min_salary: int | None = None
    has_equity: bool | None = None
