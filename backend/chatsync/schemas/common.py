"""Shared schema building blocks: camelCase base model and pagination envelope."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Generic, List, TypeVar

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serializes to camelCase, accepts either camelCase or snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationMeta(CamelModel):
    """Offset pagination metadata."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        offset = (page - 1) * limit
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit if limit else 0,
            has_next=offset + limit < total,
            has_prev=page > 1,
        )


class Page(CamelModel, Generic[T]):
    """Paginated response envelope."""

    data: List[T] = Field(default_factory=list)
    pagination: PaginationMeta
