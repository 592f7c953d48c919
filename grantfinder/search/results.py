"""
Result envelope returned to the HTTP layer.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

from grantfinder.core.exceptions import InvalidFilterError
from grantfinder.search.relevance import SearchHit


@dataclass(frozen=True)
class ResultEnvelope:
    items: List[SearchHit]
    page: int
    page_size: int
    total_count: int
    total_pages: int

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> dict:
        return {
            "grants": [hit.to_dict() for hit in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "count": self.total_count,
            "total_pages": self.total_pages,
            "has_more": self.has_more,
            "is_empty": self.is_empty,
        }


def total_pages_for(total_count: int, page_size: int) -> int:
    """ceil(total / page_size), never less than 1."""
    return max(1, math.ceil(total_count / page_size))


def assemble_results(
    items: Sequence[SearchHit],
    total_count: int,
    page: int,
    page_size: int,
) -> ResultEnvelope:
    """
    Combine a fetched page with the total match count.

    Args:
        items: Hits for the requested page, already ordered
        total_count: Total matches for the filter
        page: 1-based page number
        page_size: Records per page

    Returns:
        ResultEnvelope (a copy of items; inputs are not modified)
    """
    if page_size < 1:
        raise InvalidFilterError(f"page_size must be >= 1, got {page_size}")
    total_count = max(0, int(total_count))

    return ResultEnvelope(
        items=list(items),
        page=page,
        page_size=page_size,
        total_count=total_count,
        total_pages=total_pages_for(total_count, page_size),
    )
