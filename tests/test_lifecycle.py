"""
Record lifecycle tests — create / update / delete through RecordLifecycle.

Stage order under test:
    field validation → lookup → status policy → lock guard →
    dependency guard → value validation → no-op rejection → persist → mirror
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from coreapi.core.actor import Actor
from coreapi.core.constants import SCENARIO_DELETE, Status
from coreapi.core.exceptions import (
    DependencyBlocked,
    InvalidStatusTransition,
    LockConflict,
    NoEffectiveChange,
    NotFound,
    PermissionDenied,
    StorageFailure,
    ValidationFailed,
)
from coreapi.core.lifecycle import RecordLifecycle
from coreapi.models import db
from coreapi.models.example import Example, ExampleItem
from coreapi.models.record import DEFAULT_SCENARIO_FIELDS

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
USER = Actor("alice")
ADMIN = Actor("root", frozenset({"superadmin"}))


@pytest.fixture()
def lifecycle(app):
    lc = RecordLifecycle.for_model(Example, app)
    lc.clock = lambda: NOW
    return lc


def _fields(exc):
    return [e["field"] for e in exc.value.errors]


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════


class TestCreate:
    def test_defaults(self, lifecycle):
        record = lifecycle.create({"name": "Item A"}, USER)
        assert record.id is not None
        assert record.status == Status.DRAFT
        assert record.lock_version == 1
        assert record.sync_mdb is None
        log = record.detail_info["change_log"]
        assert log["created_by"] == "alice"
        assert log["created_at"] == "2024-03-01T12:00:00Z"
        assert log["updated_at"] is None

    def test_system_actor_by_default(self, lifecycle):
        record = lifecycle.create({"name": "Item A"})
        assert record.change_log["created_by"] == "system"

    def test_status_override(self, lifecycle):
        assert lifecycle.create({"name": "A", "status": 1}, USER).status == Status.ACTIVE

    def test_detail_info_kept_but_change_log_owned(self, lifecycle):
        record = lifecycle.create(
            {"name": "A", "detail_info": {"color": "red", "change_log": {"created_by": "mallory"}}},
            USER,
        )
        assert record.detail_info["color"] == "red"
        assert record.change_log["created_by"] == "alice"

    def test_id_not_allowed(self, lifecycle):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.create({"id": 5, "name": "A"}, USER)
        assert _fields(exc) == ["id"]

    def test_unknown_and_missing_fields(self, lifecycle):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.create({"colour": "red"}, USER)
        assert _fields(exc) == ["colour", "name"]
        assert exc.value.errors[0]["message"] == "Field colour not a valid request parameter."
        assert exc.value.errors[1]["message"] == "name cannot be blank."

    def test_name_too_long(self, lifecycle):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.create({"name": "x" * 256}, USER)
        assert _fields(exc) == ["name"]

    def test_status_outside_enum(self, lifecycle):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.create({"name": "A", "status": 42}, USER)
        assert _fields(exc) == ["status"]

    def test_detail_info_must_be_object(self, lifecycle):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.create({"name": "A", "detail_info": "nope"}, USER)
        assert _fields(exc) == ["detail_info"]

    def test_restricted_status_needs_superadmin(self, lifecycle):
        with pytest.raises(PermissionDenied):
            lifecycle.create({"name": "A", "status": Status.COMPLETED}, USER)
        assert lifecycle.create({"name": "A", "status": Status.COMPLETED}, ADMIN).status == Status.COMPLETED

    def test_non_dict_params(self, lifecycle):
        with pytest.raises(ValidationFailed):
            lifecycle.create(["name"], USER)


# ═════════════════════════════════════════════════════════════════════════════
# Update
# ═════════════════════════════════════════════════════════════════════════════


class TestUpdate:
    def test_update_increments_lock_and_stamps(self, lifecycle, make_example):
        record = make_example("A", lock_version=3)
        updated = lifecycle.update({"id": record.id, "lock_version": 3, "name": "B"}, USER)
        assert updated.name == "B"
        assert updated.lock_version == 4
        assert updated.change_log["updated_by"] == "alice"
        assert updated.change_log["updated_at"] == "2024-03-01T12:00:00Z"
        assert updated.change_log["created_at"] == "2024-01-05T10:00:00Z"
        assert updated.change_log["deleted_at"] is None

    def test_id_as_string_accepted(self, lifecycle, make_example):
        record = make_example("A")
        updated = lifecycle.update({"id": str(record.id), "lock_version": "1", "name": "B"}, USER)
        assert updated.lock_version == 2

    def test_missing_id_and_lock(self, lifecycle):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.update({"name": "B"}, USER)
        assert _fields(exc) == ["id", "lock_version"]

    @pytest.mark.parametrize("bad_id", [0, -3, "abc", 1.5])
    def test_bad_id(self, lifecycle, bad_id):
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.update({"id": bad_id, "lock_version": 1, "name": "B"}, USER)
        assert exc.value.errors == [{"field": "id", "message": "id must be an integer and greater than 0."}]

    def test_not_found(self, lifecycle):
        with pytest.raises(NotFound) as exc:
            lifecycle.update({"id": 999, "lock_version": 1, "name": "B"}, USER)
        assert exc.value.errors == []

    def test_stale_lock_wins_over_field_errors(self, lifecycle, make_example):
        record = make_example("A", lock_version=3)
        with pytest.raises(LockConflict):
            lifecycle.update({"id": record.id, "lock_version": 2, "name": "x" * 300}, USER)
        db.session.expire_all()
        assert db.session.get(Example, record.id).name == "A"

    def test_status_regression_rejected(self, lifecycle, make_example):
        record = make_example("A", status=Status.COMPLETED)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.DRAFT}, USER)

    def test_status_checked_before_lock(self, lifecycle, make_example):
        record = make_example("A", status=Status.ACTIVE, lock_version=3)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.update({"id": record.id, "lock_version": 2, "status": Status.DRAFT}, USER)

    def test_allowed_transition(self, lifecycle, make_example):
        record = make_example("A")
        updated = lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.ACTIVE}, USER)
        assert updated.status == Status.ACTIVE
        assert updated.change_log["updated_by"] == "alice"

    def test_restricted_status_needs_superadmin(self, lifecycle, make_example):
        record = make_example("A", status=Status.ACTIVE)
        with pytest.raises(PermissionDenied) as exc:
            lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.COMPLETED}, USER)
        assert exc.value.errors == []
        updated = lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.COMPLETED}, ADMIN)
        assert updated.status == Status.COMPLETED

    def test_superadmin_revives_deleted(self, lifecycle, make_example):
        record = make_example("A", status=Status.DELETED)
        updated = lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.ACTIVE}, ADMIN)
        assert updated.status == Status.ACTIVE

    def test_user_cannot_revive_deleted(self, lifecycle, make_example):
        record = make_example("A", status=Status.DELETED)
        with pytest.raises(PermissionDenied):
            lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.ACTIVE}, USER)

    def test_noop_same_values(self, lifecycle, make_example):
        record = make_example("A")
        with pytest.raises(NoEffectiveChange) as exc:
            lifecycle.update({"id": record.id, "lock_version": 1, "name": "A", "status": 2}, USER)
        assert exc.value.status_code == 400
        assert exc.value.message == "Failed, no record updated."

    def test_noop_only_non_semantic_fields(self, lifecycle, make_example):
        record = make_example("A")
        with pytest.raises(NoEffectiveChange):
            lifecycle.update({"id": record.id, "lock_version": 1}, USER)
        db.session.expire_all()
        assert db.session.get(Example, record.id).lock_version == 1

    def test_detail_info_change_preserves_change_log(self, lifecycle, make_example):
        record = make_example("A", detail={"color": "red"})
        updated = lifecycle.update(
            {"id": record.id, "lock_version": 1, "detail_info": {"color": "blue"}}, USER,
        )
        assert updated.detail_info["color"] == "blue"
        assert updated.change_log["created_at"] == "2024-01-05T10:00:00Z"
        assert updated.change_log["updated_by"] == "alice"

    def test_name_too_long_after_lock(self, lifecycle, make_example):
        record = make_example("A")
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.update({"id": record.id, "lock_version": 1, "name": "x" * 300}, USER)
        assert _fields(exc) == ["name"]

    def test_lost_race_is_lock_conflict(self, lifecycle, make_example):
        record = make_example("A")

        class RacingStore(type(lifecycle.store)):
            def compare_and_swap(self, record, expected_version, values):
                db.session.execute(
                    update(Example).where(Example.id == record.id).values(lock_version=expected_version + 1)
                )
                db.session.commit()
                return super().compare_and_swap(record, expected_version, values)

        lifecycle.store = RacingStore()
        with pytest.raises(LockConflict):
            lifecycle.update({"id": record.id, "lock_version": 1, "name": "B"}, USER)

    def test_storage_failure(self, lifecycle, make_example, monkeypatch):
        record = make_example("A")

        def _boom(*args, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

        monkeypatch.setattr(lifecycle.store, "compare_and_swap", _boom)
        with pytest.raises(StorageFailure) as exc:
            lifecycle.update({"id": record.id, "lock_version": 1, "name": "B"}, USER)
        assert exc.value.status_code == 500
        assert exc.value.message == "Failed to update data."


# ═════════════════════════════════════════════════════════════════════════════
# Delete
# ═════════════════════════════════════════════════════════════════════════════


class TestDelete:
    def test_soft_delete(self, lifecycle, make_example):
        record = make_example("A")
        deleted = lifecycle.delete({"id": record.id, "lock_version": 1}, ADMIN)
        assert deleted.status == Status.DELETED
        assert deleted.lock_version == 2
        assert deleted.change_log["deleted_by"] == "root"
        assert deleted.change_log["deleted_at"] == "2024-03-01T12:00:00Z"
        assert deleted.change_log["updated_at"] is None
        assert db.session.get(Example, record.id) is not None

    def test_delete_twice(self, lifecycle, make_example):
        record = make_example("A", status=Status.DELETED)
        with pytest.raises(NoEffectiveChange) as exc:
            lifecycle.delete({"id": record.id, "lock_version": 1}, USER)
        assert exc.value.message == "Failed, Record already deleted."

    def test_delete_rejects_extra_fields(self, lifecycle, make_example):
        record = make_example("A")
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.delete({"id": record.id, "lock_version": 1, "name": "B"}, USER)
        assert _fields(exc) == ["name"]

    def test_delete_stale_lock(self, lifecycle, make_example):
        record = make_example("A", lock_version=2)
        with pytest.raises(LockConflict):
            lifecycle.delete({"id": record.id, "lock_version": 1}, ADMIN)

    @pytest.mark.parametrize("status", [Status.DRAFT, Status.ACTIVE, Status.COMPLETED])
    def test_delete_needs_superadmin(self, lifecycle, make_example, status):
        record = make_example("A", status=status)
        with pytest.raises(PermissionDenied):
            lifecycle.delete({"id": record.id, "lock_version": 1}, USER)
        db.session.expire_all()
        assert db.session.get(Example, record.id).status == status

    @pytest.mark.parametrize("status", [Status.ACTIVE, Status.COMPLETED])
    def test_delete_follows_transition_table(self, lifecycle, make_example, status):
        record = make_example("A", status=status)
        with pytest.raises(InvalidStatusTransition) as exc:
            lifecycle.delete({"id": record.id, "lock_version": 1}, ADMIN)
        assert _fields(exc) == ["status"]

    def test_delete_and_update_agree(self, lifecycle, make_example):
        record = make_example("A", status=Status.ACTIVE)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.update({"id": record.id, "lock_version": 1, "status": Status.DELETED}, ADMIN)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.delete({"id": record.id, "lock_version": 1}, ADMIN)

    def test_policy_checked_before_lock(self, lifecycle, make_example):
        record = make_example("A", lock_version=3)
        with pytest.raises(PermissionDenied):
            lifecycle.delete({"id": record.id, "lock_version": 1}, USER)


# ═════════════════════════════════════════════════════════════════════════════
# Dependency guard
# ═════════════════════════════════════════════════════════════════════════════


class TestDependencies:
    def test_referenced_name_locked(self, lifecycle, make_example, make_item):
        record = make_example("A")
        make_item(record)
        with pytest.raises(DependencyBlocked) as exc:
            lifecycle.update({"id": record.id, "lock_version": 1, "name": "B"}, USER)
        assert _fields(exc) == ["name"]
        assert "example" in exc.value.errors[0]["message"]

    def test_referenced_record_cannot_be_deleted(self, lifecycle, make_example, make_item):
        record = make_example("A")
        make_item(record)
        with pytest.raises(DependencyBlocked) as exc:
            lifecycle.delete({"id": record.id, "lock_version": 1}, ADMIN)
        assert _fields(exc) == ["status"]

    def test_unguarded_field_still_editable(self, lifecycle, make_example, make_item):
        record = make_example("A")
        make_item(record)
        updated = lifecycle.update(
            {"id": record.id, "lock_version": 1, "detail_info": {"note": "x"}}, USER,
        )
        assert updated.lock_version == 2

    def test_unreferenced_record_free(self, lifecycle, make_example):
        record = make_example("A")
        assert lifecycle.update({"id": record.id, "lock_version": 1, "name": "B"}, USER).name == "B"

    def test_record_listed_in_json_array_locked(self, lifecycle, make_example, make_item):
        owner = make_example("A")
        linked = make_example("B")
        free = make_example("C")
        make_item(owner, linked=[free.id + 100, linked.id])
        with pytest.raises(DependencyBlocked) as exc:
            lifecycle.update({"id": linked.id, "lock_version": 1, "name": "B2"}, USER)
        assert _fields(exc) == ["name"]
        assert lifecycle.update({"id": free.id, "lock_version": 1, "name": "C2"}, USER).name == "C2"

    def test_empty_json_array_blocks_nothing(self, lifecycle, make_example, make_item):
        owner = make_example("A")
        other = make_example("B")
        make_item(owner, linked=[])
        assert lifecycle.update({"id": other.id, "lock_version": 1, "name": "B2"}, USER).name == "B2"


class TestDefaultFieldSets:
    def test_model_without_delete_fields_uses_default(self):
        assert ExampleItem.field_set(SCENARIO_DELETE) == DEFAULT_SCENARIO_FIELDS[SCENARIO_DELETE]

    def test_item_deleted_through_default_fields(self, app, make_example, make_item):
        item = make_item(make_example("A"))
        lifecycle = RecordLifecycle.for_model(ExampleItem, app)
        deleted = lifecycle.delete({"id": item.id, "lock_version": 1}, ADMIN)
        assert deleted.status == Status.DELETED

    def test_item_delete_rejects_unknown_field(self, app, make_example, make_item):
        item = make_item(make_example("A"))
        lifecycle = RecordLifecycle.for_model(ExampleItem, app)
        with pytest.raises(ValidationFailed) as exc:
            lifecycle.delete({"id": item.id, "lock_version": 1, "name": "x"}, ADMIN)
        assert _fields(exc) == ["name"]


# ═════════════════════════════════════════════════════════════════════════════
# Mirror
# ═════════════════════════════════════════════════════════════════════════════


class TestMirrorSync:
    def test_upsert_on_create_and_update(self, lifecycle, mirror, fake_mongo):
        lifecycle.mirror = mirror
        record = lifecycle.create({"name": "A"}, USER)
        lifecycle.update({"id": record.id, "lock_version": 1, "name": "B"}, USER)
        documents = list(fake_mongo["example"].find({}, {"_id": 0}))
        assert len(documents) == 1
        assert documents[0]["name"] == "B"
        assert documents[0]["lock_version"] == 2
        assert "sync_mdb" not in documents[0]

    def test_failure_flags_record_and_succeeds(self, lifecycle, failing_mirror):
        lifecycle.mirror = failing_mirror
        record = lifecycle.create({"name": "A"}, USER)
        assert record.sync_mdb == 1
        db.session.expire_all()
        stored = db.session.get(Example, record.id)
        assert stored.name == "A"
        assert stored.sync_mdb == 1
        assert stored.lock_version == 1

    def test_success_clears_flag(self, lifecycle, mirror, failing_mirror):
        lifecycle.mirror = failing_mirror
        record = lifecycle.create({"name": "A"}, USER)
        lifecycle.mirror = mirror
        updated = lifecycle.update({"id": record.id, "lock_version": 1, "name": "B"}, USER)
        assert updated.sync_mdb is None
