"""
Pagination and sort resolution.

``resolve_page`` never lets the fetch window run past the available rows:
the effective page size is clamped to the total count, out-of-range pages
are clamped to the last page, and the final ``limit`` is trimmed so that
``offset + limit <= total_count``.
"""

import math
from dataclasses import dataclass

from coreapi.core.constants import SORT_DIRECTIONS
from coreapi.core.exceptions import ValidationFailed
from coreapi.core.messages import t

DEFAULT_SORT_FIELD = "id"
DEFAULT_SORT_DIR = "desc"


@dataclass(frozen=True)
class PageSpec:
    page: int
    page_size: int
    total_count: int
    offset: int
    limit: int
    page_count: int

    def to_dict(self, display: int | None = None) -> dict:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "page_count": self.page_count,
            "total_count": self.total_count,
            "display": self.limit if display is None else display,
        }


def _to_int(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationFailed.for_field(field, t("integer", label=field))
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed.for_field(field, t("integer", label=field)) from None


def validate_page(value) -> int:
    """Parse the requested page; ``<= 0`` is rejected."""
    page = _to_int(value, "page")
    if page is None:
        return 1
    if page <= 0:
        raise ValidationFailed.for_field("page", t("pageMustBeGreaterThanZero"))
    return page


def validate_page_size(value) -> int | None:
    size = _to_int(value, "page_size")
    if size is not None and size <= 0:
        raise ValidationFailed.for_field("page_size", t("integerNoZero", label="page_size"))
    return size


def resolve_page(requested_page: int, requested_size: int | None, total_count: int, default_size: int) -> PageSpec:
    """Compute the page window for ``total_count`` rows.

    ``requested_page`` is assumed already validated (>= 1).
    """
    total_count = max(int(total_count), 0)
    size = min(total_count, requested_size or default_size)
    if size <= 0:
        return PageSpec(page=1, page_size=0, total_count=total_count, offset=0, limit=0, page_count=0)

    page_count = math.ceil(total_count / size)
    page = min(max(int(requested_page), 1), page_count)
    offset = (page - 1) * size
    limit = min(size, total_count - offset)
    return PageSpec(
        page=page,
        page_size=size,
        total_count=total_count,
        offset=offset,
        limit=limit,
        page_count=page_count,
    )


def resolve_sort(requested_field: str | None = None, requested_direction: str | None = None) -> tuple[str, str]:
    field = requested_field or DEFAULT_SORT_FIELD
    direction = str(requested_direction or DEFAULT_SORT_DIR).lower()
    if direction not in SORT_DIRECTIONS:
        direction = DEFAULT_SORT_DIR
    return field, direction
