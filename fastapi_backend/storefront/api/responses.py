"""JSON envelope helpers and HTTP error shortcuts shared by every router."""
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, Query, status

from storefront.api.db import total_pages


class PageParams:
    """Dependency collecting ``page``/``limit`` query parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="1-based page number"),
        limit: int = Query(10, ge=1, le=100, description="Page size"),
    ) -> None:
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _plain_numbers(value: Any) -> Any:
    """Turn ``Decimal`` amounts into JSON numbers: whole values as int, others as float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _plain_numbers(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain_numbers(v) for v in value]
    return value


# PUBLIC_INTERFACE
def envelope(
    data: Any = None,
    message: str = "OK",
    status_code: int = status.HTTP_200_OK,
    pagination: Optional[Dict[str, int]] = None,
) -> Dict[str, Any]:
    """Wrap a payload in the standard response envelope."""
    body: Dict[str, Any] = {"status": status_code, "message": message, "data": _plain_numbers(data)}
    if pagination is not None:
        body["pagination"] = pagination
    return body


# PUBLIC_INTERFACE
def paginated(rows: Any, total_items: int, page: PageParams, message: str) -> Dict[str, Any]:
    """Envelope for a single page of a larger result set."""
    return envelope(
        data=rows,
        message=message,
        pagination={
            "current_page": page.page,
            "page_size": page.limit,
            "total_items": int(total_items),
            "total_pages": total_pages(int(total_items), page.limit),
        },
    )


def not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


def bad_request(msg: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg)


def conflict(msg: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=msg)


def forbidden(msg: str = "Not allowed") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=msg)
