"""
Record Mixin — columns and declarations shared by lifecycle-managed models.

Adds:
  - ``status``        integer lifecycle status (default Draft)
  - ``lock_version``  optimistic lock counter, starts at 1
  - ``detail_info``   JSON blob; ``detail_info["change_log"]`` is the audit block
  - ``sync_mdb``      1 = mirror copy is stale, NULL = in sync

Records are never physically removed: deletion is a status change to
Deleted. Subclasses declare which fields each scenario accepts and which
other tables reference them:

    class Invoice(RecordMixin, db.Model):
        __tablename__ = "invoice"
        number = db.Column(db.String(30), nullable=False)

        scenario_fields = {
            SCENARIO_CREATE: FieldSet(allowed=("number", "status", "detail_info"), required=("number",)),
            ...
        }
        dependencies = (Dependency("invoice_line", ("invoice_id",)),)

Scenarios missing from ``scenario_fields`` fall back to
``DEFAULT_SCENARIO_FIELDS``.
"""

from dataclasses import dataclass

from sqlalchemy import String

from coreapi.core.constants import (
    CHANGE_LOG,
    DETAIL_INFO,
    OPTIMISTIC_LOCK,
    SCENARIO_CREATE,
    SCENARIO_DELETE,
    SCENARIO_UPDATE,
    STATUS_LABELS,
    Status,
)
from coreapi.core.messages import t
from coreapi.models import db


@dataclass(frozen=True)
class FieldSet:
    """Fields a scenario accepts (``allowed``) and demands (``required``)."""

    allowed: tuple[str, ...]
    required: tuple[str, ...] = ()

    def unknown(self, params) -> list[str]:
        return [key for key in params if key not in self.allowed]

    def missing(self, params) -> list[str]:
        return [
            key for key in self.required
            if key not in params or params[key] is None or params[key] == ""
        ]


@dataclass(frozen=True)
class Dependency:
    """``table.<field>`` columns that hold this record's id.

    With ``in_array=True`` each field is a JSON array of ids instead of a
    plain foreign-key column.
    """

    table: str
    fields: tuple[str, ...]
    in_array: bool = False


class RecordMixin:
    """Mixin that adds lifecycle columns to any SQLAlchemy model."""

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.Integer, nullable=False, default=int(Status.DRAFT), index=True)
    lock_version = db.Column(db.Integer, nullable=False, default=1, comment="Optimistic Locking")
    detail_info = db.Column(db.JSON, nullable=True)
    sync_mdb = db.Column(db.Integer, nullable=True, default=None, comment="1: unsync, null: synced")

    scenario_fields: dict[str, FieldSet] = {}
    dependencies: tuple[Dependency, ...] = ()
    # Columns a search request may filter or sort on
    search_fields: tuple[str, ...] = ("id", "status")

    # ── Helpers ──────────────────────────────────────────────────────────

    @classmethod
    def field_set(cls, scenario: str) -> FieldSet:
        """Declared field set, or the default one for scenarios a model leaves out."""
        return cls.scenario_fields.get(scenario) or DEFAULT_SCENARIO_FIELDS[scenario]

    @property
    def change_log(self) -> dict:
        return dict((self.detail_info or {}).get(CHANGE_LOG) or {})

    @property
    def status_label(self) -> str | None:
        if self.status is None:
            return None
        return STATUS_LABELS.get(Status(self.status))

    def validate_values(self, values: dict) -> list[dict]:
        """Type and length checks for submitted column values.

        Returns a list of ``{"field", "message"}``; empty when valid.
        """
        errors = []
        for name, value in values.items():
            if name == DETAIL_INFO:
                if value is not None and not isinstance(value, dict):
                    errors.append({"field": name, "message": t("object", label=name)})
                continue
            if name in ("status", OPTIMISTIC_LOCK, "id"):
                continue
            column = self.__table__.columns.get(name)
            if column is None or not isinstance(column.type, String):
                continue
            if value is None:
                if not column.nullable:
                    errors.append({"field": name, "message": t("required", label=name)})
                continue
            if not isinstance(value, str):
                errors.append({"field": name, "message": t("string", label=name)})
            elif column.type.length and len(value) > column.type.length:
                errors.append({
                    "field": name,
                    "message": t("stringTooLong", label=name, value=column.type.length),
                })
        return errors

    def base_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "status_label": self.status_label,
            "lock_version": self.lock_version,
            "detail_info": self.detail_info,
        }

    def to_dict(self) -> dict:
        return self.base_dict()


DEFAULT_SCENARIO_FIELDS = {
    SCENARIO_CREATE: FieldSet(allowed=("status", DETAIL_INFO)),
    SCENARIO_UPDATE: FieldSet(
        allowed=("id", "status", DETAIL_INFO, OPTIMISTIC_LOCK),
        required=("id", OPTIMISTIC_LOCK),
    ),
    SCENARIO_DELETE: FieldSet(allowed=("id", OPTIMISTIC_LOCK), required=("id", OPTIMISTIC_LOCK)),
}
