from datetime import datetime, timezone

from coreapi.core.changelog import empty_change_log, on_create, on_mutate, utc_timestamp
from coreapi.core.constants import Status

T0 = "2024-01-05T10:00:00Z"
T1 = "2024-02-01T08:30:00Z"


def test_on_create_stamps_created_only():
    assert on_create("alice", T0) == {
        "created_at": T0,
        "created_by": "alice",
        "updated_at": None,
        "updated_by": None,
        "deleted_at": None,
        "deleted_by": None,
    }


def test_mutation_stamps_updated():
    log = on_mutate(on_create("alice", T0), Status.ACTIVE, ["name"], "bob", T1)
    assert log["updated_at"] == T1
    assert log["updated_by"] == "bob"
    assert log["deleted_at"] is None
    assert log["created_by"] == "alice"


def test_delete_stamps_deleted_only():
    log = on_mutate(on_create("alice", T0), Status.DELETED, ["status"], "bob", T1)
    assert log["deleted_at"] == T1
    assert log["deleted_by"] == "bob"
    assert log["updated_at"] is None


def test_noop_leaves_log_untouched():
    original = on_create("alice", T0)
    first = on_mutate(original, None, [], "bob", T1)
    second = on_mutate(first, None, [], "carol", "2025-01-01T00:00:00Z")
    assert first == original
    assert second == first


def test_created_fields_never_rewritten():
    log = on_mutate(on_create("alice", T0), Status.ACTIVE, ["name", "created_by"], "bob", T1)
    assert log["created_at"] == T0
    assert log["created_by"] == "alice"


def test_returns_new_dict():
    original = on_create("alice", T0)
    on_mutate(original, Status.ACTIVE, ["name"], "bob", T1)
    assert original["updated_at"] is None


def test_missing_existing_log_is_filled():
    log = on_mutate(None, None, ["name"], "bob", T1)
    assert set(log) == set(empty_change_log())
    assert log["updated_by"] == "bob"


def test_utc_timestamp_format():
    now = datetime(2024, 3, 9, 14, 5, 7, tzinfo=timezone.utc)
    assert utc_timestamp(now=now) == "2024-03-09T14:05:07Z"
    assert utc_timestamp("%Y/%m/%d", now=now) == "2024/03/09"
