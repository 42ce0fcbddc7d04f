"""
Change-log stamping for the ``detail_info.change_log`` audit block.

Decides whether and which fields to stamp. The timestamp and the actor name
are supplied by the caller.
"""

from datetime import datetime, timezone

from coreapi.core.constants import CHANGE_LOG_DATES, CHANGE_LOG_USERS, Status

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

CHANGE_LOG_KEYS = tuple(k for pair in zip(CHANGE_LOG_DATES, CHANGE_LOG_USERS) for k in pair)


def utc_timestamp(fmt: str = DEFAULT_TIMESTAMP_FORMAT, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime(fmt)


def empty_change_log() -> dict:
    return {key: None for key in CHANGE_LOG_KEYS}


def on_create(actor: str, timestamp: str) -> dict:
    log = empty_change_log()
    log["created_at"] = timestamp
    log["created_by"] = actor
    return log


def on_mutate(existing: dict | None, new_status, changed_fields, actor: str, timestamp: str) -> dict:
    """Return the change log after a mutation.

    A move to Deleted stamps ``deleted_*``; any other effective change stamps
    ``updated_*``; a save without changes returns the log untouched.
    ``created_*`` is never modified here.
    """
    log = empty_change_log()
    log.update(existing or {})

    if new_status is not None and int(new_status) == Status.DELETED:
        log["deleted_at"] = timestamp
        log["deleted_by"] = actor
    elif changed_fields:
        log["updated_at"] = timestamp
        log["updated_by"] = actor
    return log
