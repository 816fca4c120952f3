"""Page/limit normalisation for list endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return ceil(total / self.limit) if total else 0


def parse_pagination(page: int | None = None, limit: int | None = None) -> Page:
    """Clamp page to >= 1 and limit to [1, MAX_LIMIT]."""
    parsed_page = max(1, int(page or 1))
    parsed_limit = min(MAX_LIMIT, max(1, int(limit or DEFAULT_LIMIT)))
    return Page(page=parsed_page, limit=parsed_limit)
