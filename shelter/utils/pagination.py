"""Pagination utilities for list endpoints and list services."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from fastapi import Query
from sqlalchemy.orm import Query as SQLAlchemyQuery

from shelter.core.config import settings


T = TypeVar("T")

DEFAULT_PAGE = 1


@dataclass
class PaginationParams:
    """Page/per-page pair; services accept it directly."""
    page: int = DEFAULT_PAGE
    per_page: int = settings.DEFAULT_PER_PAGE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


def get_pagination(
    page: int = Query(DEFAULT_PAGE, ge=1, description="Page number (1-indexed)"),
    per_page: int = Query(
        settings.DEFAULT_PER_PAGE,
        ge=1,
        le=settings.MAX_PER_PAGE,
        description=f"Items per page (max {settings.MAX_PER_PAGE})",
    ),
) -> PaginationParams:
    """
    Pagination dependency.

    Usage:
        @router.get("/animals")
        def list_animals(pagination: PaginationParams = Depends(get_pagination)):
            ...
    """
    return PaginationParams(page=page, per_page=per_page)


@dataclass
class PaginatedResponse(Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def create(cls, items: list[T], total: int, pagination: PaginationParams) -> "PaginatedResponse[T]":
        pages = (total + pagination.per_page - 1) // pagination.per_page if pagination.per_page > 0 else 0
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            per_page=pagination.per_page,
            pages=pages,
        )

    def as_dict(self) -> dict:
        """Plain dict for a pydantic list response model."""
        return dict(vars(self))


def paginate_query(query: SQLAlchemyQuery, pagination: PaginationParams | None) -> tuple[list, int]:
    """
    Apply pagination to a SQLAlchemy query.

    Returns:
        (items, total_count). With no pagination every row is returned.
    """
    total = query.count()
    if pagination is None:
        return query.all(), total
    items = query.offset(pagination.offset).limit(pagination.per_page).all()
    return items, total
