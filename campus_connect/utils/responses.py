from typing import Any, Dict, List, Optional
import uuid
from fastapi import status, Request
from fastapi.responses import JSONResponse
from campus_connect.schemas.response_schemas import (
    ApiResponse,
    PaginationMeta,
    ResponseStatus,
)
from campus_connect.utils.context import get_request_id


def _envelope(request: Request, status_code: int, **fields: Any) -> JSONResponse:
    """Wrap `fields` in the shared envelope, tagged with the request id and path."""
    request_id = (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or str(uuid.uuid4())
    )
    body = ApiResponse(request_id=request_id, path=str(request.url.path), **fields)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


class ResponseBuilder:
    """Every HTTP answer of the API goes through one of these constructors"""

    @staticmethod
    def success(
        request: Request,
        data: Any = None,
        message: str = "Request successful",
        meta: Optional[Dict[str, Any]] = None,
        pagination: Optional[PaginationMeta] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        return _envelope(
            request,
            status_code,
            success=True,
            status=ResponseStatus.SUCCESS,
            message=message,
            data=data,
            meta=meta,
            pagination=pagination,
        )

    @staticmethod
    def error(
        request: Request,
        message: str = "An error occurred",
        errors: Optional[List[Dict[str, Any]]] = None,
        error_code: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        data: Any = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """The machine-readable code travels as meta.errorCode"""
        error_meta = {**(meta or {}), **({"errorCode": error_code} if error_code else {})}
        return _envelope(
            request,
            status_code,
            success=False,
            status=ResponseStatus.ERROR,
            message=message,
            data=data,
            meta=error_meta or None,
            errors=errors,
        )

    @staticmethod
    def paginated(
        request: Request,
        data: List[Any],
        page: int,
        per_page: int,
        total: int,
        message: str = "Data retrieved successfully",
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """Page-number listing such as the notification feed"""
        return ResponseBuilder.success(
            request=request,
            data=data,
            message=message,
            meta=meta,
            pagination=PaginationMeta.for_page(page, per_page, total),
        )
