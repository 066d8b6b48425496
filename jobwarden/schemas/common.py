import math
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, computed_field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success/message/data envelope returned by every operation."""

    success: bool
    message: str = ""
    data: T | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, data: T | None = None, message: str = "OK") -> "ApiResponse[T]":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error_code: str | None = None) -> "ApiResponse[T]":
        return cls(success=False, message=message, error_code=error_code)


class PagedResult(BaseModel, Generic[T]):
    """One page of a sorted, filtered query (page index is 1-based)."""

    items: list[T] = Field(default_factory=list)
    total_count: int = 0
    page_index: int = 1
    page_size: int = 20

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)


class PageQuery(BaseModel):
    """Paging and sorting shared by all list queries."""

    page_index: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=500)
    sort_by: str | None = None
    sort_order: str | None = None

    @property
    def descending(self) -> bool:
        return (self.sort_order or "desc").lower() != "asc"
