# app/schemas/common.py
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """
    Base for request/response bodies exchanged with the SPA.

    - JSON keys are camelCase (medicationId, totalAmount, ...)
    - snake_case names are still accepted on input
    - can be built straight from ORM rows
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response envelope"""

    success: bool = True
    data: T | None = None
    message: str
    error: dict[str, Any] | None = None


class Pagination(BaseModel):
    """Pagination metadata"""

    current: int
    pages: int
    total: int
    limit: int


class Page(CamelModel, Generic[T]):
    """A page of results with its pagination metadata"""

    items: list[T]
    pagination: Pagination
