from __future__ import annotations
from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def no_data() -> dict[str, Any]:
    """Success with an explicit ``data: null``, for lookups that found nothing."""
    return {"success": True, "data": None}


def listing(page: dict[str, Any]) -> dict[str, Any]:
    return {
        "success": True,
        "count": page["count"],
        "total": page["total"],
        "page": page["page"],
        "pages": page["pages"],
        "data": page["items"],
    }
