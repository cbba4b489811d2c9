"""Utility modules."""

from shelter.utils.pagination import (
    PaginatedResponse,
    PaginationParams,
    get_pagination,
    paginate_query,
)

__all__ = [
    "PaginationParams",
    "PaginatedResponse",
    "get_pagination",
    "paginate_query",
]
