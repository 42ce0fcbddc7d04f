"""
Response envelopes.

Success:
    {"code": 200, "success": true, "message": "...", "data": [...]}

Paginated:
    {"code": 200, "success": true, "message": "...",
     "pagination": {"page", "page_size", "page_count", "total_count", "display"},
     "data": [...]}

Error (see ``CoreError.to_dict``):
    {"code": 422, "success": false, "message": "...", "errors": [...]}

``data`` is always a list: a single object is wrapped, ``None`` becomes ``[]``.
"""

from coreapi.core.messages import t
from coreapi.core.pagination import PageSpec


def _serialize(item):
    return item.to_dict() if hasattr(item, "to_dict") else item


def as_list(data) -> list:
    if data is None:
        return []
    if isinstance(data, (list, tuple)):
        return [_serialize(item) for item in data]
    return [_serialize(data)]


def success(data=None, message: str | None = None, code: int = 200) -> dict:
    return {
        "code": code,
        "success": True,
        "message": message or t("success"),
        "data": as_list(data),
    }


def scenario_success(record, scenario: str) -> dict:
    """Success envelope with the ``<scenario>RecordSuccess`` message."""
    return success(record, t(f"{scenario}RecordSuccess"))


def paginated(items, page: PageSpec, message: str | None = None) -> dict:
    data = as_list(items)
    return {
        "code": 200,
        "success": True,
        "message": message or t("success"),
        "pagination": page.to_dict(display=len(data)),
        "data": data,
    }


def error_body(exc) -> dict:
    return exc.to_dict()
