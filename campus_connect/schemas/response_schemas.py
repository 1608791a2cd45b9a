from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, List

from pydantic import Field

from campus_connect.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class PaginationMeta(BaseModel):
    """Page-number pagination block of the envelope"""

    page: int
    per_page: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None

    @classmethod
    def for_page(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        total_pages = -(-total // per_page) if per_page else 0
        has_next = page < total_pages
        has_prev = page > 1
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=has_next,
            has_prev=has_prev,
            next_page=page + 1 if has_next else None,
            prev_page=page - 1 if has_prev else None,
        )


class OffsetPage(BaseModel):
    """Offset/limit page used by the admin console listings"""

    items: List[Any] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)


class ApiResponse(BaseModel):
    """
    Envelope shared by every HTTP response.

    Error responses carry their machine-readable code in `meta.errorCode`
    and, for request validation failures, per-field details in `errors`.
    """

    success: bool
    status: ResponseStatus
    message: str
    data: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None
    pagination: Optional[PaginationMeta] = None
    errors: Optional[List[Dict[str, Any]]] = None
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    request_id: str
    path: Optional[str] = None
    version: str = "1.0"
