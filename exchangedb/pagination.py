"""Pagination parameters and paginated result containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Pagination:
    """Limit, offset and ordering options for list queries.

    A bare ``Pagination()`` leaves every option unset so that each query
    applies its own defaults; ``Pagination.standard()`` gives the usual
    application-wide defaults.
    """

    limit: Optional[int] = None
    offset: Optional[int] = None
    order_by: Optional[str] = None
    order_direction: Optional[str] = None

    @classmethod
    def standard(cls) -> "Pagination":
        """Return pagination with the default page size and ordering."""
        return cls(
            limit=100,
            offset=0,
            order_by="created_at",
            order_direction="desc",
        )


@dataclass
class Paginated(Generic[T]):
    """One page of results together with paging information."""

    items: List[T] = field(default_factory=list)
    total_count: int = 0
    next_offset: Optional[int] = None
    has_more: bool = False