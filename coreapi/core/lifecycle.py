"""
Record lifecycle — create / update / delete orchestration.

Every mutation walks the same stages and stops at the first failure:

    1. field validation      unknown, missing and malformed ``id`` fields
    2. lookup                update/delete only, NotFound when missing
    3. status policy         restricted statuses, transition table
    4. lock guard            update/delete only, LockConflict when stale
    5. dependency guard      referenced records keep their guarded fields
    6. value validation      lengths, types, status enum
    7. no-op rejection       NoEffectiveChange
    8. change log + persist  compare-and-swap write, StorageFailure on DB errors
    9. mirror upsert         best effort, failure only flags ``sync_mdb``

Usage:
    lifecycle = RecordLifecycle.for_model(Example)
    record = lifecycle.update({"id": 5, "lock_version": 3, "name": "B"}, actor)
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from coreapi.core import changelog
from coreapi.core.actor import SYSTEM, Actor
from coreapi.core.constants import (
    CHANGE_LOG,
    DETAIL_INFO,
    DISALLOWED_UPDATE_STATUSES,
    NON_SEMANTIC_FIELDS,
    OPTIMISTIC_LOCK,
    SCENARIO_CREATE,
    SCENARIO_DELETE,
    SCENARIO_UPDATE,
    STATUS_LABELS,
    SYNC_PENDING,
    Status,
)
from coreapi.core.exceptions import (
    DependencyBlocked,
    NoEffectiveChange,
    NotFound,
    StorageFailure,
    ValidationFailed,
)
from coreapi.core.lock_guard import check_version
from coreapi.core.messages import t
from coreapi.core.status_policy import StatusPolicy
from coreapi.services.mirror import MirrorError
from coreapi.services.record_store import SqlRecordStore

logger = logging.getLogger(__name__)

_INVALID = object()


def parse_id(value):
    """Positive integer id, or ``None`` when malformed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value)
        return number if number > 0 else None
    return None


def _parse_status(value):
    if value is None or isinstance(value, bool):
        return _INVALID if isinstance(value, bool) else None
    try:
        return Status(int(value))
    except (TypeError, ValueError):
        return _INVALID


def _strip_change_log(detail) -> dict:
    return {k: v for k, v in (detail or {}).items() if k != CHANGE_LOG}


class RecordLifecycle:
    """Runs validated, policy-checked mutations for one model class."""

    def __init__(self, model, store=None, policy=None, mirror=None, clock=None, config=None):
        self.model = model
        self.store = store or SqlRecordStore()
        self.policy = policy or StatusPolicy.from_config(config or {})
        self.mirror = mirror
        self.clock = clock
        self.config = config or {}

    @classmethod
    def for_model(cls, model, app=None):
        """Build a lifecycle wired to the app's policy, mirror and config."""
        app = app or current_app
        return cls(
            model,
            policy=app.extensions.get("status_policy"),
            mirror=app.extensions.get("mirror"),
            config=app.config,
        )

    # ── Public operations ────────────────────────────────────────────────

    def create(self, params: dict, actor: Actor | None = None):
        actor = actor or SYSTEM
        self._validate_fields(SCENARIO_CREATE, params)

        status = _parse_status(params.get("status"))
        if isinstance(status, Status):
            self.policy.check_restricted(status, actor.is_privileged)

        values = {k: v for k, v in params.items() if k not in ("status", OPTIMISTIC_LOCK)}
        self._validate_values(None, values, status)

        detail = _strip_change_log(values.pop(DETAIL_INFO, None))
        detail[CHANGE_LOG] = changelog.on_create(actor.name, self._timestamp())
        record = self.model(
            **values,
            status=int(status if isinstance(status, Status) else Status.DRAFT),
            lock_version=1,
            detail_info=detail,
        )

        try:
            self.store.insert(record)
        except SQLAlchemyError as exc:
            logger.exception("Create failed on %s", self.model.__tablename__)
            raise StorageFailure(t("createRecordFailed")) from exc

        logger.info(
            "Record created: %s id=%s by %s", self.model.__tablename__, record.id, actor.name,
            extra={"record_id": record.id, "scenario": SCENARIO_CREATE, "actor": actor.name},
        )
        self._sync_mirror(record)
        return record

    def update(self, params: dict, actor: Actor | None = None):
        return self._mutate(SCENARIO_UPDATE, params, actor or SYSTEM)

    def delete(self, params: dict, actor: Actor | None = None):
        return self._mutate(SCENARIO_DELETE, params, actor or SYSTEM)

    # ── Mutation pipeline ────────────────────────────────────────────────

    def _mutate(self, scenario: str, params: dict, actor: Actor):
        self._validate_fields(scenario, params)

        record = self.store.get(self.model, parse_id(params["id"]))
        if record is None:
            raise NotFound()
        current = Status(record.status)

        if scenario == SCENARIO_DELETE:
            requested = Status.DELETED
        else:
            requested = _parse_status(params.get("status")) if "status" in params else None

        if isinstance(requested, Status) and requested != current:
            self.policy.check_restricted(requested, actor.is_privileged)
            self.policy.check_transition(current, requested, actor.is_privileged)

        expected_version = check_version(record.lock_version, params.get(OPTIMISTIC_LOCK))

        submitted = {
            k: v for k, v in params.items()
            if k not in NON_SEMANTIC_FIELDS and k != "status"
        }
        changes = self._diff(record, submitted)
        new_status = requested if isinstance(requested, Status) else current
        if new_status != current:
            changes["status"] = int(new_status)

        self._check_dependencies(record, changes, new_status)

        if scenario == SCENARIO_UPDATE:
            self._validate_values(record, submitted, requested)

        if scenario == SCENARIO_DELETE and current is Status.DELETED:
            raise NoEffectiveChange(t("noRecordDeleted"))
        if scenario == SCENARIO_UPDATE and not changes:
            has_input = bool(submitted) or "status" in params
            raise NoEffectiveChange(t("noRecordUpdated" if has_input else "emptyParams"))

        changed_fields = list(changes)
        detail = _strip_change_log(changes.pop(DETAIL_INFO, record.detail_info))
        detail[CHANGE_LOG] = changelog.on_mutate(
            record.change_log,
            new_status if new_status != current else None,
            changed_fields,
            actor.name,
            self._timestamp(),
        )
        changes[DETAIL_INFO] = detail

        try:
            self.store.compare_and_swap(record, expected_version, changes)
        except SQLAlchemyError as exc:
            logger.exception("%s failed on %s id=%s", scenario.capitalize(), self.model.__tablename__, record.id)
            raise StorageFailure(t(f"{scenario}RecordFailed")) from exc

        logger.info(
            "Record %sd: %s id=%s by %s", scenario, self.model.__tablename__, record.id, actor.name,
            extra={"record_id": record.id, "scenario": scenario, "actor": actor.name},
        )
        self._sync_mirror(record)
        return record

    # ── Stages ───────────────────────────────────────────────────────────

    def _validate_fields(self, scenario: str, params) -> None:
        if not isinstance(params, dict):
            raise ValidationFailed(t("badRequest"))
        field_set = self.model.field_set(scenario)

        errors = [
            {"field": key, "message": t("invalidField", label=key)}
            for key in field_set.unknown(params)
        ]
        errors += [
            {"field": key, "message": t("required", label=key)}
            for key in field_set.missing(params)
        ]
        if scenario != SCENARIO_CREATE and params.get("id") not in (None, "") and parse_id(params["id"]) is None:
            errors.append({"field": "id", "message": t("integerNoZero", label="id")})
        if errors:
            raise ValidationFailed(errors=errors)

    def _diff(self, record, submitted: dict) -> dict:
        """Submitted values that differ from the stored ones."""
        changes = {}
        for key, value in submitted.items():
            if key == DETAIL_INFO:
                if not isinstance(value, dict):
                    changes[key] = value
                elif _strip_change_log(value) != _strip_change_log(record.detail_info):
                    changes[key] = {**_strip_change_log(value), CHANGE_LOG: record.change_log}
                continue
            if getattr(record, key) != value:
                changes[key] = value
        return changes

    def _check_dependencies(self, record, changes: dict, new_status: Status) -> None:
        table = self.model.__tablename__
        guarded = self.config.get("DEPENDENCIES_UPDATE", {}).get(table, ())
        disallowed = self.config.get("DISALLOWED_UPDATE_STATUSES", DISALLOWED_UPDATE_STATUSES)

        touched = [
            name for name in guarded
            if name in changes or (name == "status" and new_status in disallowed)
        ]
        if not touched:
            return

        for dependency in self.model.dependencies:
            lookup = self.store.exists_in_array if dependency.in_array else self.store.exists
            for field in dependency.fields:
                if lookup(dependency.table, field, record.id):
                    logger.warning(
                        "Dependency guard: %s id=%s referenced by %s.%s",
                        table, record.id, dependency.table, field,
                    )
                    raise DependencyBlocked(errors=[
                        {"field": name, "message": t("updatePermission", label=name, tableName=table)}
                        for name in touched
                    ])

    def _validate_values(self, record, values: dict, status) -> None:
        target = record if record is not None else self.model()
        errors = target.validate_values(values)
        if status is _INVALID:
            errors.append({
                "field": "status",
                "message": t("valueNotInList", label="status", value=", ".join(STATUS_LABELS.values())),
            })
        if errors:
            raise ValidationFailed(errors=errors)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _timestamp(self) -> str:
        fmt = self.config.get("TIMESTAMP_FORMAT", changelog.DEFAULT_TIMESTAMP_FORMAT)
        return changelog.utc_timestamp(fmt, self.clock() if self.clock else None)

    def _sync_mirror(self, record) -> None:
        if self.mirror is None:
            return
        table = self.model.__tablename__
        try:
            self.mirror.upsert(table, record.to_dict())
        except MirrorError as exc:
            logger.warning("Mirror upsert failed for %s id=%s: %s", table, record.id, exc)
            self._flag_sync(record, SYNC_PENDING)
            return
        if record.sync_mdb is not None:
            self._flag_sync(record, None)

    def _flag_sync(self, record, flag) -> None:
        try:
            self.store.mark_sync(record, flag)
        except SQLAlchemyError:
            logger.exception("Could not set sync_mdb=%s on %s id=%s", flag, self.model.__tablename__, record.id)
