"""
Pagination and sort resolution.

Bound: for every total and requested size, the window stays inside the
available rows (``offset + limit <= total_count``).
"""

import pytest

from coreapi.core.exceptions import ValidationFailed
from coreapi.core.pagination import (
    resolve_page,
    resolve_sort,
    validate_page,
    validate_page_size,
)


class TestResolvePage:
    def test_first_page(self):
        spec = resolve_page(1, 10, 25, default_size=10)
        assert (spec.offset, spec.limit, spec.page_count) == (0, 10, 3)

    def test_last_partial_page(self):
        spec = resolve_page(3, 10, 25, default_size=10)
        assert spec.offset == 20
        assert spec.limit == 5

    def test_size_clamped_to_total(self):
        spec = resolve_page(1, 50, 7, default_size=10)
        assert spec.page_size == 7
        assert spec.page_count == 1

    def test_default_size_used(self):
        assert resolve_page(1, None, 100, default_size=10).page_size == 10

    def test_page_beyond_last_is_clamped(self):
        spec = resolve_page(9, 10, 25, default_size=10)
        assert spec.page == 3
        assert spec.offset == 20

    def test_empty_total(self):
        spec = resolve_page(1, 10, 0, default_size=10)
        assert (spec.page_size, spec.limit, spec.offset, spec.page_count) == (0, 0, 0, 0)

    def test_window_never_exceeds_total(self):
        for total in range(1, 40):
            for size in range(1, 15):
                for page in range(1, 12):
                    spec = resolve_page(page, size, total, default_size=10)
                    assert spec.page_size == min(total, size)
                    assert spec.offset + spec.limit <= total
                    assert spec.limit <= spec.page_size

    def test_to_dict(self):
        spec = resolve_page(2, 10, 25, default_size=10)
        assert spec.to_dict() == {
            "page": 2, "page_size": 10, "page_count": 3, "total_count": 25, "display": 10,
        }


class TestValidatePage:
    def test_default_is_one(self):
        assert validate_page(None) == 1

    @pytest.mark.parametrize("value", [0, -1, "0"])
    def test_non_positive_rejected(self, value):
        with pytest.raises(ValidationFailed) as exc:
            validate_page(value)
        assert exc.value.errors[0]["message"] == "Page must be greater than 0."

    def test_non_integer_rejected(self):
        with pytest.raises(ValidationFailed):
            validate_page("two")

    def test_string_digits_accepted(self):
        assert validate_page("4") == 4

    def test_page_size_zero_rejected(self):
        with pytest.raises(ValidationFailed):
            validate_page_size(0)


class TestResolveSort:
    def test_defaults(self):
        assert resolve_sort() == ("id", "desc")

    def test_explicit(self):
        assert resolve_sort("name", "ASC") == ("name", "asc")

    @pytest.mark.parametrize("direction", ["sideways", 1, ""])
    def test_unknown_direction_falls_back(self, direction):
        assert resolve_sort("name", direction) == ("name", "desc")
