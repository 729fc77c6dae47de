"""
Page/size query parameters and the paged response envelope used by list endpoints.

    @router.get("")
    async def list_teams(pagination: PaginationParams = Depends()):
        stmt = select(TeamORM)
        total = await session.scalar(select(func.count()).select_from(stmt.subquery()))
        rows = (await session.execute(pagination.apply(stmt))).scalars().all()
        return pagination.paginate([TeamOut.model_validate(r) for r in rows], total)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from fastapi import Query
from sqlalchemy import Select

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class PaginationParams:
    page: int = Query(default=1, description="Page number (1-indexed); values below 1 mean 1")
    page_size: int = Query(
        default=DEFAULT_PAGE_SIZE,
        description=f"Items per page (max {MAX_PAGE_SIZE}); values below 1 mean {DEFAULT_PAGE_SIZE}",
    )

    def __post_init__(self) -> None:
        if self.page < 1:
            self.page = 1
        if self.page_size < 1:
            self.page_size = DEFAULT_PAGE_SIZE
        self.page_size = min(self.page_size, MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def apply(self, stmt: Select) -> Select:
        return stmt.offset(self.offset).limit(self.limit)

    def paginate(self, items: Sequence[Any], total: int) -> dict[str, Any]:
        total_pages = (total + self.page_size - 1) // self.page_size if total > 0 else 0
        return {
            "items": list(items),
            "pagination": {
                "page": self.page,
                "page_size": self.page_size,
                "total_items": total,
                "total_pages": total_pages,
                "has_next": self.page < total_pages,
                "has_prev": self.page > 1,
            },
        }
