from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class DeletedOut(BaseModel):
    deleted: str | int


class ErrorBody(BaseModel):
    message: str | list[str]
    status: int


class ErrorOut(BaseModel):
    error: ErrorBody


def reject_null(value: Any) -> Any:
    """Partial updates may omit a required column but never clear it."""
    if value is None:
        raise ValueError("may not be null")
    return value
