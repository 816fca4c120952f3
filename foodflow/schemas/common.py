"""Shared schema base classes."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PaginationRead(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ErrorResponse(BaseModel):
    """Body returned for every handled application error."""

    detail: str
    code: str
