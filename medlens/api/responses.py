"""Success envelope shared by every router: {"success": true, "message": ..., "data": ...}."""
from typing import Any


def ok(data: Any = None, message: str = "OK", **extra: Any) -> dict:
    body = {"success": True, "message": message, "data": data}
    body.update(extra)
    return body


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "current_page": page,
        "total_pages": (total + limit - 1) // limit if limit else 0,
        "total_items": total,
        "items_per_page": limit,
    }
