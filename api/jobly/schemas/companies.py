from pydantic import Field, field_validator

from jobly.schemas.common import ApiModel, ApiRequest, reject_null

URL_PATTERN = r"^https?://\S+$"


class CompanyOut(ApiModel):
    handle: str
    name: str
    description: str | None = None
    num_employees: int | None = None
    logo_url: str | None = None


class CompanyJobOut(ApiModel):
    id: int
    title: str
    salary: int | None = None
    equity: str | None = None


class CompanyDetailOut(CompanyOut):
    jobs: list[CompanyJobOut] = Field(default_factory=list)


class CompanyEnvelope(ApiModel):
    company: CompanyOut


class CompanyDetailEnvelope(ApiModel):
    company: CompanyDetailOut


class CompanyListOut(ApiModel):
    companies: list[CompanyOut]


class CompanyNewRequest(ApiRequest):
    handle: str = Field(min_length=1, max_length=25)
    name: str = Field(min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, ge=0)
    logo_url: str | None = Field(default=None, pattern=URL_PATTERN)


class CompanyUpdateRequest(ApiRequest):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, ge=0)
    logo_url: str | None = Field(default=None, pattern=URL_PATTERN)

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value: str | None) -> str | None:
        return reject_null(value)
