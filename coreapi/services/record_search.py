"""
Record search — filtered, sorted, paginated reads.

The same request parameters drive both backends:

    POST /api/v1/example/data   → relational store (SqlRenderer)
    POST /api/v1/example/list   → MongoDB mirror   (MongoRenderer)

Accepted parameters: the model's ``search_fields``, the pagination keys
(``page``, ``page_size``, ``sort_by``, ``sort_dir``) and the change-log
filters (``created_at``, ``created_by``, ...). Anything else is rejected.

Filter per field:
    status          → status filter (Deleted hidden unless requested)
    integer column  → "1,2,3" membership
    string column   → tokenised case-insensitive LIKE
"""

import logging

from flask import current_app
from sqlalchemy import Integer, String

from coreapi.core.changelog import CHANGE_LOG_KEYS
from coreapi.core.constants import PAGINATION_PARAMS
from coreapi.core.exceptions import StorageFailure, ValidationFailed
from coreapi.core.filters import FilterBuilder, MongoRenderer, SqlRenderer
from coreapi.core.messages import t
from coreapi.core.pagination import resolve_page, resolve_sort, validate_page, validate_page_size
from coreapi.services.mirror import MirrorError
from coreapi.services.record_store import SqlRecordStore

logger = logging.getLogger(__name__)


class RecordSearch:
    """Search one model in the relational store or its mirror."""

    def __init__(self, model, store=None, mirror=None, config=None):
        self.model = model
        self.store = store or SqlRecordStore()
        self.mirror = mirror
        self.config = config or {}

    @classmethod
    def for_model(cls, model, app=None):
        app = app or current_app
        return cls(model, mirror=app.extensions.get("mirror"), config=app.config)

    @property
    def allowed_params(self) -> tuple[str, ...]:
        return (*self.model.search_fields, *PAGINATION_PARAMS, *CHANGE_LOG_KEYS)

    # ── Parameter handling ───────────────────────────────────────────────

    def validate_params(self, params) -> dict:
        if params is None:
            return {}
        if not isinstance(params, dict):
            raise ValidationFailed(t("badRequest"))
        errors = [
            {"field": key, "message": t("invalidField", label=key)}
            for key in params if key not in self.allowed_params
        ]
        if errors:
            raise ValidationFailed(errors=errors)
        return params

    def build_filter(self, params: dict):
        builder = FilterBuilder()
        columns = self.model.__table__.columns
        for name in self.model.search_fields:
            value = params.get(name)
            if name == "status":
                builder.status(name, value)
            elif isinstance(columns[name].type, Integer):
                builder.multi_value(name, value)
            elif isinstance(columns[name].type, String):
                builder.like(name, value)
            else:
                builder.equals(name, value)
        builder.changelog_filters(params)
        return builder.build()

    def _sort(self, params: dict) -> tuple[str, str]:
        field, direction = resolve_sort(
            params.get("sort_by"),
            params.get("sort_dir") or self.config.get("SORT_DIR"),
        )
        if field not in self.model.search_fields:
            raise ValidationFailed.for_field("sort_by", t("invalidSortField", label=field))
        return field, direction

    def _page_request(self, params: dict) -> tuple[int, int | None]:
        page = validate_page(params.get("page"))
        size = validate_page_size(params.get("page_size"))
        return page, size

    # ── Relational ───────────────────────────────────────────────────────

    def search(self, params):
        """Return ``(records, PageSpec)`` from the relational store."""
        params = self.validate_params(params)
        page, size = self._page_request(params)
        sort_field, sort_dir = self._sort(params)
        clause = SqlRenderer(self.model).render(self.build_filter(params))

        total = self.store.count(self.model, clause)
        page_spec = resolve_page(page, size, total, self.config.get("PAGE_SIZE", 10))
        if page_spec.limit == 0:
            return [], page_spec

        column = getattr(self.model, sort_field)
        order_by = column.asc() if sort_dir == "asc" else column.desc()
        records = self.store.find(
            self.model, clause, order_by=order_by, offset=page_spec.offset, limit=page_spec.limit,
        )
        logger.debug(
            "Search %s: total=%s page=%s size=%s",
            self.model.__tablename__, total, page_spec.page, page_spec.page_size,
        )
        return records, page_spec

    # ── Mirror ───────────────────────────────────────────────────────────

    def search_mirror(self, params):
        """Return ``(documents, PageSpec)`` from the MongoDB mirror."""
        if self.mirror is None:
            raise StorageFailure(t("mirrorUnavailable"))
        params = self.validate_params(params)
        page, size = self._page_request(params)
        sort_field, sort_dir = self._sort(params)
        filter_doc = MongoRenderer().render(self.build_filter(params))
        table = self.model.__tablename__

        try:
            total = self.mirror.count(table, filter_doc)
            page_spec = resolve_page(page, size, total, self.config.get("PAGE_SIZE", 10))
            if page_spec.limit == 0:
                return [], page_spec
            documents = self.mirror.search(
                table,
                filter_doc,
                sort=[(sort_field, 1 if sort_dir == "asc" else -1)],
                skip=page_spec.offset,
                limit=page_spec.limit,
            )
        except MirrorError as exc:
            logger.warning("Mirror search on %s failed: %s", table, exc)
            raise StorageFailure(t("mirrorUnavailable")) from exc
        return documents, page_spec
