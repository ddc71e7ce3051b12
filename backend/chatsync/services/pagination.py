"""Offset pagination over SQLAlchemy queries."""
from dataclasses import dataclass
from typing import Any, List

from sqlalchemy.orm import Query

from chatsync.errors import ValidationError
from chatsync.schemas.common import PaginationMeta

MAX_PAGE_SIZE = 100


@dataclass
class PageResult:
    """One page of ORM rows plus its metadata."""
    data: List[Any]
    pagination: PaginationMeta


def paginate(query: Query, page: int, limit: int) -> PageResult:
    """Apply offset/limit to an ordered query and count the full result set."""
    if page < 1:
        raise ValidationError("page must be >= 1", {"page": page})
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit})

    total = query.order_by(None).count()
    offset = (page - 1) * limit
    rows = query.offset(offset).limit(limit).all()

    return PageResult(data=rows, pagination=PaginationMeta.build(page, limit, total))
