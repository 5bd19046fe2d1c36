"""
Core pagination utilities for API endpoints.
"""
from typing import TypeVar, Generic, List, Callable, Optional, Any
from pydantic import BaseModel
from fastapi import Query
from sqlalchemy.orm import Query as SQLAlchemyQuery
import math

T = TypeVar("T")


class PageParams:
    """
    Page parameters for pagination.

    Attributes:
        page: Page number (1-indexed)
        limit: Number of items per page
    """
    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(10, ge=1, le=100, description="Items per page")
    ):
        self.page = page
        self.limit = limit
        self.offset = (page - 1) * limit


class PageResponse(BaseModel, Generic[T]):
    """
    Paginated response model.

    Attributes:
        items: List of items for the current page
        total: Total number of matching items
        page: Current page number
        limit: Number of items per page
        pages: Total number of pages
    """
    items: List[T]
    total: int
    page: int
    limit: int
    pages: int


def paginate(
    query: SQLAlchemyQuery,
    page_params: PageParams,
    transform: Optional[Callable[[Any], Any]] = None
) -> dict:
    """
    Paginate a SQLAlchemy query.

    Args:
        query: SQLAlchemy query to paginate (already ordered)
        page_params: Pagination parameters
        transform: Optional callable applied to each row

    Returns:
        dict: Fields of a PageResponse
    """
    total = query.count()
    items = query.offset(page_params.offset).limit(page_params.limit).all()

    if transform:
        items = [transform(item) for item in items]

    pages = math.ceil(total / page_params.limit) if total > 0 else 0

    return {
        "items": items,
        "total": total,
        "page": page_params.page,
        "limit": page_params.limit,
        "pages": pages,
    }
