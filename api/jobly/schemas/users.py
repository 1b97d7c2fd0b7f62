from pydantic import EmailStr, Field, field_validator

from jobly.schemas.common import ApiModel, ApiRequest, reject_null


class UserOut(ApiModel):
    username: str
    first_name: str
    last_name: str
    email: str
    is_admin: bool = False


class UserDetailOut(UserOut):
    jobs_applied: list[int] = Field(default_factory=list)


class UserEnvelope(ApiModel):
    user: UserOut


class UserDetailEnvelope(ApiModel):
    user: UserDetailOut


class UserCreatedOut(ApiModel):
    user: UserOut
    token: str


class UserListOut(ApiModel):
    users: list[UserOut]


class AppliedOut(ApiModel):
    applied: int


class UserNewRequest(ApiRequest):
    username: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=5, max_length=20)
    first_name: str = Field(min_length=1, max_length=30)
    last_name: str = Field(min_length=1, max_length=30)
    email: EmailStr
    is_admin: bool = False


class UserUpdateRequest(ApiRequest):
    first_name: str | None = Field(default=None, min_length=1, max_length=30)
    last_name: str | None = Field(default=None, min_length=1, max_length=30)
    password: str | None = Field(default=None, min_length=5, max_length=20)
    email: EmailStr | None = None
    is_admin: bool | None = None

    @field_validator("first_name", "last_name", "password", "email", "is_admin")
    @classmethod
    def required_columns_not_null(cls, value: object) -> object:
        return reject_null(value)
