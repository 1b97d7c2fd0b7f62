from pydantic import BaseModel, EmailStr, Field

from jobly.schemas.common import ApiRequest


class TokenRequest(ApiRequest):
    username: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=1)


class RegisterRequest(ApiRequest):
    username: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=5, max_length=20)
    first_name: str = Field(min_length=1, max_length=30)
    last_name: str = Field(min_length=1, max_length=30)
    email: EmailStr


class TokenOut(BaseModel):
    token: str
