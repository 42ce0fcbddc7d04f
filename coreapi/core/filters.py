"""
Record filter builder with relational and document-store renderers.

Callers describe a search once, using one field/operator vocabulary, and
hand the resulting ``FilterSpec`` to whichever backend executes it:

    spec = (
        FilterBuilder()
        .equals("id", params.get("id"))
        .status("status", params.get("status"))
        .like("name", params.get("name"))
        .changelog_filters(params)
        .build()
    )
    clause = SqlRenderer(Example).render(spec)        # SQLAlchemy expression
    mongo_filter = MongoRenderer().render(spec)       # {"status": {"$ne": 4}, ...}

Every builder method silently skips ``None`` input ("no opinion"), so an
empty request yields an empty spec and therefore no predicate at all.

Field names may be dotted: ``detail_info.change_log.created_at`` means the
``detail_info`` column (or top-level document key) and the JSON path
``change_log -> created_at`` below it.

JSON columns get their own predicates: ``json_equals``, ``json_contains``
(subtree match), ``json_has_keys``, ``json_range`` and ``json_null``. Both
renderers give them the same meaning, including the loose scalar equality
described on ``JsonEquals``.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from sqlalchemy import and_, func, or_

from coreapi.core.constants import (
    CHANGE_LOG,
    CHANGE_LOG_DATES,
    CHANGE_LOG_USERS,
    DETAIL_INFO,
    Status,
)
from coreapi.core.exceptions import ValidationFailed
from coreapi.core.messages import t

AND = "and"
OR = "or"

_LIKE_ESCAPE = "\\"


# ── Intermediate representation ──────────────────────────────────────────────

@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class Like:
    """Case-insensitive substring match; tokens must appear in order."""

    field: str
    tokens: tuple[str, ...]


@dataclass(frozen=True)
class ExactString:
    """Case-insensitive whole-value match."""

    field: str
    value: str


@dataclass(frozen=True)
class InSet:
    field: str
    values: tuple[int, ...]


@dataclass(frozen=True)
class StatusFilter:
    field: str
    value: int | None = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive range on the date part of a timestamp."""

    field: str
    start: str
    end: str


@dataclass(frozen=True)
class DateEquals:
    field: str
    value: str


@dataclass(frozen=True)
class JsonEquals:
    """Scalar at a JSON path equals ``value``.

    Numbers and their string spelling compare equal (``5`` matches ``"5"``)
    on every backend; ``None`` matches a missing key or a JSON null.
    """

    field: str
    value: Any


@dataclass(frozen=True)
class JsonContains:
    """Object at ``field`` contains every ``(path, value)`` pair."""

    field: str
    pairs: tuple[tuple[str, Any], ...]


@dataclass(frozen=True)
class JsonHasKeys:
    """Keys present with a non-null value; all of them, or any one."""

    field: str
    keys: tuple[str, ...]
    match_all: bool = True


@dataclass(frozen=True)
class JsonRange:
    """Inclusive numeric range at a JSON path; either bound may be open.

    Only JSON numbers are compared. The relational backend also casts
    numeric text, the document store does not.
    """

    field: str
    low: float | None = None
    high: float | None = None


@dataclass(frozen=True)
class JsonNull:
    field: str
    is_null: bool = True


@dataclass
class FilterSpec:
    """Per-request filter description, consumed once by a renderer."""

    equality_filters: list = field(default_factory=list)
    like_filters: list = field(default_factory=list)
    or_filters: list = field(default_factory=list)
    date_range_filters: list = field(default_factory=list)
    json_filters: list = field(default_factory=list)

    def and_predicates(self) -> list:
        return [
            *self.equality_filters,
            *self.like_filters,
            *self.date_range_filters,
            *self.json_filters,
        ]

    def is_empty(self) -> bool:
        return not (self.and_predicates() or self.or_filters)


# ── Builder ──────────────────────────────────────────────────────────────────

def _parse_date(value: str, label: str) -> str:
    try:
        return date.fromisoformat(value.strip()).isoformat()
    except (AttributeError, ValueError):
        raise ValidationFailed.for_field(label, t("invalidDate", label=label)) from None


def _as_number(value, label: str) -> float:
    if not isinstance(value, bool):
        try:
            return float(value)
        except (TypeError, ValueError):
            pass
    raise ValidationFailed.for_field(label, t("number", label=label))


def _flatten(document: dict, prefix: str = ""):
    """Yield ``(dotted_path, scalar)`` leaves of a nested object."""
    for key, value in document.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            yield from _flatten(value, f"{path}.")
        elif isinstance(value, (dict, list, tuple)):
            raise ValueError(f"Containment leaves must be scalars: {path}")
        else:
            yield path, value


class FilterBuilder:
    """Accumulates predicates into a ``FilterSpec``.

    Each method returns the builder. ``group="or"`` places the predicate in
    the OR group, which is combined as a whole with the AND predicates.
    """

    def __init__(self) -> None:
        self._spec = FilterSpec()

    def _add(self, bucket: str, predicate, group: str):
        if group == OR:
            self._spec.or_filters.append(predicate)
        else:
            getattr(self._spec, bucket).append(predicate)
        return self

    def equals(self, field_name: str, value, group: str = AND):
        if value is None:
            return self
        return self._add("equality_filters", Equals(field_name, value), group)

    def like(self, field_name: str, value: str | None, group: str = AND):
        if value is None:
            return self
        tokens = tuple(str(value).split())
        if not tokens:
            return self
        return self._add("like_filters", Like(field_name, tokens), group)

    def exact_string(self, field_name: str, value: str | None, group: str = AND):
        if value is None:
            return self
        return self._add("like_filters", ExactString(field_name, str(value)), group)

    def multi_value(self, field_name: str, csv, group: str = AND):
        """``"1,2,3"`` (or a list) becomes ``field IN (1, 2, 3)``."""
        if csv is None or csv == "":
            return self
        raw = csv if isinstance(csv, (list, tuple)) else str(csv).split(",")
        try:
            values = tuple(int(str(v).strip()) for v in raw if str(v).strip())
        except ValueError:
            raise ValidationFailed.for_field(field_name, t("integer", label=field_name)) from None
        if not values:
            return self
        return self._add("equality_filters", InSet(field_name, values), group)

    def status(self, field_name: str = "status", value=None, group: str = AND):
        """Always hides Deleted records unless Deleted is asked for explicitly."""
        if value is not None and value != "":
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ValidationFailed.for_field(field_name, t("integer", label=field_name)) from None
        else:
            value = None
        return self._add("equality_filters", StatusFilter(field_name, value), group)

    def date_range(self, field_name: str, combined: str | None, group: str = AND, label: str | None = None):
        """``"2024-01-01,2024-01-31"`` is an inclusive range, a single date is equality."""
        if combined is None or str(combined).strip() == "":
            return self
        label = label or field_name
        combined = str(combined)
        if "," in combined:
            start, end = combined.split(",", 1)
            predicate = DateRange(field_name, _parse_date(start, label), _parse_date(end, label))
        else:
            predicate = DateEquals(field_name, _parse_date(combined, label))
        return self._add("date_range_filters", predicate, group)

    def json_equals(self, column: str, path: str, value, group: str = AND):
        if value is None:
            return self
        return self._add("json_filters", JsonEquals(f"{column}.{path}", value), group)

    def json_contains(self, column: str, document: dict | None, group: str = AND):
        """``{"meta": {"source": "import"}}`` matches objects holding that subtree."""
        if not document:
            return self
        pairs = tuple(_flatten(document))
        return self._add("json_filters", JsonContains(column, pairs), group)

    def json_has_keys(self, column: str, keys, match_all: bool = True, group: str = AND):
        if keys is None:
            return self
        keys = (keys,) if isinstance(keys, str) else tuple(keys)
        if not keys:
            return self
        return self._add("json_filters", JsonHasKeys(column, keys, match_all), group)

    def json_range(self, column: str, path: str, low=None, high=None, group: str = AND):
        if low is None and high is None:
            return self
        bounds = tuple(None if b is None else _as_number(b, path) for b in (low, high))
        return self._add("json_filters", JsonRange(f"{column}.{path}", *bounds), group)

    def json_null(self, column: str, path: str, is_null: bool = True, group: str = AND):
        return self._add("json_filters", JsonNull(f"{column}.{path}", is_null), group)

    def or_(self, *predicates):
        self._spec.or_filters.extend(p for p in predicates if p is not None)
        return self

    def changelog_filters(self, values, column: str = DETAIL_INFO):
        """Date filters on ``*_at`` and substring filters on ``*_by`` audit fields."""
        for key in CHANGE_LOG_DATES:
            self.date_range(f"{column}.{CHANGE_LOG}.{key}", values.get(key), label=key)
        for key in CHANGE_LOG_USERS:
            self.like(f"{column}.{CHANGE_LOG}.{key}", values.get(key))
        return self

    def build(self) -> FilterSpec:
        return self._spec


# ── Relational renderer ──────────────────────────────────────────────────────

def escape_like(value: str) -> str:
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def like_pattern(tokens) -> str:
    return "%" + "%".join(escape_like(tok) for tok in tokens) + "%"


class SqlRenderer:
    """Renders a ``FilterSpec`` into a SQLAlchemy boolean expression."""

    def __init__(self, model) -> None:
        self.model = model

    def _column(self, field_name: str, as_text: bool = True):
        head, _, path = field_name.partition(".")
        column = getattr(self.model, head, None)
        if column is None or not hasattr(column, "property"):
            raise ValidationFailed.for_field(head, t("invalidField", label=head))
        if path:
            element = column[tuple(path.split("."))]
            return element.as_string() if as_text else element
        return column

    def _json_scalar(self, field_name: str, value):
        """JSON path equality, extracted with the cast the query value implies."""
        element = self._column(field_name, as_text=False)
        if value is None:
            return element.as_string().is_(None)
        if isinstance(value, bool):
            return element.as_boolean() == value
        if isinstance(value, int):
            return element.as_integer() == value
        if isinstance(value, float):
            return element.as_float() == value
        return element.as_string() == str(value)

    def clause(self, predicate):
        if isinstance(predicate, Equals):
            if "." in predicate.field:
                return self._json_scalar(predicate.field, predicate.value)
            return self._column(predicate.field) == predicate.value
        if isinstance(predicate, JsonEquals):
            return self._json_scalar(predicate.field, predicate.value)
        if isinstance(predicate, JsonContains):
            return and_(*[
                self._json_scalar(f"{predicate.field}.{path}", value)
                for path, value in predicate.pairs
            ])
        if isinstance(predicate, JsonHasKeys):
            present = [
                self._column(f"{predicate.field}.{key}").isnot(None) for key in predicate.keys
            ]
            return and_(*present) if predicate.match_all else or_(*present)
        if isinstance(predicate, JsonRange):
            number = self._column(predicate.field, as_text=False).as_float()
            bounds = []
            if predicate.low is not None:
                bounds.append(number >= predicate.low)
            if predicate.high is not None:
                bounds.append(number <= predicate.high)
            return and_(*bounds)
        if isinstance(predicate, JsonNull):
            text = self._column(predicate.field)
            return text.is_(None) if predicate.is_null else text.isnot(None)
        if isinstance(predicate, Like):
            return self._column(predicate.field).ilike(like_pattern(predicate.tokens), escape=_LIKE_ESCAPE)
        if isinstance(predicate, ExactString):
            return self._column(predicate.field).ilike(escape_like(predicate.value), escape=_LIKE_ESCAPE)
        if isinstance(predicate, InSet):
            return self._column(predicate.field).in_(predicate.values)
        if isinstance(predicate, StatusFilter):
            column = self._column(predicate.field)
            if predicate.value is None:
                return column != int(Status.DELETED)
            if predicate.value == Status.DELETED:
                return column == int(Status.DELETED)
            return and_(column != int(Status.DELETED), column == predicate.value)
        if isinstance(predicate, DateRange):
            day = func.date(self._column(predicate.field))
            return and_(day >= predicate.start, day <= predicate.end)
        if isinstance(predicate, DateEquals):
            return func.date(self._column(predicate.field)) == predicate.value
        raise TypeError(f"Unsupported predicate: {predicate!r}")

    def render(self, spec: FilterSpec):
        """Return the combined clause, or ``None`` for an empty spec."""
        clauses = [self.clause(p) for p in spec.and_predicates()]
        if spec.or_filters:
            clauses.append(or_(*[self.clause(p) for p in spec.or_filters]))
        if not clauses:
            return None
        return clauses[0] if len(clauses) == 1 else and_(*clauses)


# ── Document-store renderer ──────────────────────────────────────────────────

def _next_day(value: str) -> str:
    return (date.fromisoformat(value) + timedelta(days=1)).isoformat()


_INTEGER_TEXT = re.compile(r"-?\d+")
_DECIMAL_TEXT = re.compile(r"-?\d+\.\d+")


def scalar_variants(value) -> list:
    """Stored JSON scalars that count as equal to ``value``.

    Numbers and their decimal text compare equal, as do booleans and 0/1,
    which is what the relational casts in ``SqlRenderer`` accept too.
    """
    if isinstance(value, bool):
        return [value, int(value)]
    if isinstance(value, (int, float)):
        variants = [value, str(value)]
        if isinstance(value, float) and value.is_integer():
            variants.append(str(int(value)))
        return variants
    text = str(value)
    if _INTEGER_TEXT.fullmatch(text):
        return [text, int(text)]
    if _DECIMAL_TEXT.fullmatch(text):
        return [text, float(text)]
    return [text]


class MongoRenderer:
    """Renders a ``FilterSpec`` into a MongoDB filter document."""

    @staticmethod
    def _scalar(value):
        if value is None:
            return None
        variants = scalar_variants(value)
        return variants[0] if len(variants) == 1 else {"$in": variants}

    def condition(self, predicate):
        if isinstance(predicate, Equals) and "." not in predicate.field:
            return predicate.value
        if isinstance(predicate, (Equals, JsonEquals)):
            return self._scalar(predicate.value)
        if isinstance(predicate, JsonRange):
            bounds = {}
            if predicate.low is not None:
                bounds["$gte"] = predicate.low
            if predicate.high is not None:
                bounds["$lte"] = predicate.high
            return bounds
        if isinstance(predicate, JsonNull):
            return None if predicate.is_null else {"$ne": None}
        if isinstance(predicate, Like):
            pattern = ".*".join(re.escape(tok) for tok in predicate.tokens)
            return {"$regex": pattern, "$options": "i"}
        if isinstance(predicate, ExactString):
            return {"$regex": f"^{re.escape(predicate.value)}$", "$options": "i"}
        if isinstance(predicate, InSet):
            return {"$in": list(predicate.values)}
        if isinstance(predicate, StatusFilter):
            if predicate.value is None:
                return {"$ne": int(Status.DELETED)}
            if predicate.value == Status.DELETED:
                return {"$eq": int(Status.DELETED)}
            return {"$ne": int(Status.DELETED), "$eq": predicate.value}
        if isinstance(predicate, DateRange):
            return {"$gte": predicate.start, "$lt": _next_day(predicate.end)}
        if isinstance(predicate, DateEquals):
            return {"$regex": f"^{re.escape(predicate.value)}"}
        raise TypeError(f"Unsupported predicate: {predicate!r}")

    def _document(self, predicate) -> dict:
        if isinstance(predicate, JsonContains):
            return {
                f"{predicate.field}.{path}": self._scalar(value)
                for path, value in predicate.pairs
            }
        if isinstance(predicate, JsonHasKeys):
            present = [
                {f"{predicate.field}.{key}": {"$exists": True, "$ne": None}}
                for key in predicate.keys
            ]
            if len(present) == 1:
                return present[0]
            return {"$and" if predicate.match_all else "$or": present}
        return {predicate.field: self.condition(predicate)}

    def render(self, spec: FilterSpec) -> dict:
        parts = []
        docs = [self._document(p) for p in spec.and_predicates()]
        keys = [key for doc in docs for key in doc]
        mergeable = len(set(keys)) == len(keys) and not any(key.startswith("$") for key in keys)
        if docs and mergeable:
            merged = {}
            for doc in docs:
                merged.update(doc)
            parts.append(merged)
        else:
            parts.extend(docs)
        if spec.or_filters:
            parts.append({"$or": [self._document(p) for p in spec.or_filters]})

        if not parts:
            return {}
        return parts[0] if len(parts) == 1 else {"$and": parts}
