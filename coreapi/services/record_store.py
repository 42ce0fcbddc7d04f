"""
Relational record store.

Thin layer over the Flask-SQLAlchemy session. Writes commit immediately;
any ``SQLAlchemyError`` rolls the session back and propagates so the
lifecycle can turn it into ``StorageFailure``.

Updates are an explicit compare-and-swap:

    UPDATE <table> SET ..., lock_version = :expected + 1
    WHERE id = :id AND lock_version = :expected

Zero affected rows means another writer got there first.
"""

import logging

from sqlalchemy import cast, exists, func, select, true, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError

from coreapi.core.constants import OPTIMISTIC_LOCK, SYNC_MONGODB
from coreapi.core.exceptions import LockConflict
from coreapi.models import db

logger = logging.getLogger(__name__)


class SqlRecordStore:
    """Reads and writes lifecycle records through ``db.session``."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, model, record_id):
        return self.session.get(model, record_id)

    def find(self, model, clause=None, order_by=None, offset: int = 0, limit: int | None = None) -> list:
        stmt = select(model)
        if clause is not None:
            stmt = stmt.where(clause)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def count(self, model, clause=None) -> int:
        stmt = select(func.count()).select_from(model)
        if clause is not None:
            stmt = stmt.where(clause)
        return self.session.scalar(stmt) or 0

    def exists(self, table_name: str, field: str, value) -> bool:
        """True when any row of ``table_name`` has ``field == value``."""
        column = self._column(table_name, field)
        return bool(self.session.scalar(select(exists().where(column == value))))

    def exists_in_array(self, table_name: str, field: str, value) -> bool:
        """True when the JSON array ``field`` of any row contains ``value``.

        PostgreSQL uses jsonb containment, other backends (SQLite) expand
        the array with ``json_each``.
        """
        column = self._column(table_name, field)
        if self.session.get_bind().dialect.name == "postgresql":
            stmt = select(exists().where(cast(column, JSONB).contains([value])))
        else:
            elements = func.json_each(column).table_valued("value").alias("elements")
            stmt = select(
                select(column.table.c.id)
                .select_from(column.table.join(elements, true()))
                .where(elements.c.value == value)
                .exists()
            )
        return bool(self.session.scalar(stmt))

    @staticmethod
    def _column(table_name: str, field: str):
        table = db.metadata.tables.get(table_name)
        if table is None:
            raise KeyError(f"Unknown table: {table_name}")
        return table.c[field]

    # ── Writes ───────────────────────────────────────────────────────────

    def insert(self, record):
        try:
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return record

    def compare_and_swap(self, record, expected_version: int, values: dict):
        """Write ``values`` iff the stored lock version is still ``expected_version``.

        On success the version is incremented and ``record`` is refreshed.
        """
        model = type(record)
        values = {k: v for k, v in values.items() if k not in ("id", OPTIMISTIC_LOCK)}
        values[OPTIMISTIC_LOCK] = expected_version + 1
        stmt = (
            update(model)
            .where(model.id == record.id, getattr(model, OPTIMISTIC_LOCK) == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                self.session.rollback()
                logger.warning(
                    "Compare-and-swap lost: %s id=%s expected lock_version=%s",
                    model.__tablename__, record.id, expected_version,
                )
                raise LockConflict()
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(record)
        return record

    def mark_sync(self, record, flag):
        """Set or clear the mirror-sync flag without touching the lock version."""
        model = type(record)
        try:
            self.session.execute(
                update(model)
                .where(model.id == record.id)
                .values({SYNC_MONGODB: flag})
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(record)
        return record
