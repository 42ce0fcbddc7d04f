"""
Core REST API
Shared constants: record statuses, scenarios, sync flags and the default
status transition table.

The transition table here is only the shipped default. Applications override
it through ``Config.STATUS_TRANSITIONS``; ``StatusPolicy.from_config`` reads
the configured value.
"""

from enum import IntEnum


class Status(IntEnum):
    """Lifecycle status stored on every record."""

    INACTIVE = 0
    ACTIVE = 1
    DRAFT = 2
    COMPLETED = 3
    DELETED = 4
    MAINTENANCE = 5
    APPROVED = 6
    REJECTED = 7

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    Status.INACTIVE: "Inactive",
    Status.ACTIVE: "Active",
    Status.DRAFT: "Draft",
    Status.COMPLETED: "Completed",
    Status.DELETED: "Deleted",
    Status.MAINTENANCE: "Maintenance",
    Status.APPROVED: "Approved",
    Status.REJECTED: "Rejected",
}


# ── Scenarios ────────────────────────────────────────────────────────────────

SCENARIO_CREATE = "create"
SCENARIO_UPDATE = "update"
SCENARIO_DELETE = "delete"


# ── Column names managed by the core ─────────────────────────────────────────

OPTIMISTIC_LOCK = "lock_version"
SYNC_MONGODB = "sync_mdb"
DETAIL_INFO = "detail_info"
CHANGE_LOG = "change_log"

# Fields whose change alone never counts as an effective update
NON_SEMANTIC_FIELDS = frozenset({"id", OPTIMISTIC_LOCK})

SYNC_PENDING = 1

CHANGE_LOG_DATES = ("created_at", "updated_at", "deleted_at")
CHANGE_LOG_USERS = ("created_by", "updated_by", "deleted_by")

DEFAULT_ACTOR = "system"


# ── Status rules ─────────────────────────────────────────────────────────────

DEFAULT_STATUS_TRANSITIONS = {
    Status.DRAFT:       [Status.INACTIVE, Status.ACTIVE, Status.DELETED, Status.MAINTENANCE],
    Status.ACTIVE:      [Status.COMPLETED, Status.APPROVED, Status.REJECTED],
    Status.INACTIVE:    [Status.ACTIVE, Status.DRAFT, Status.DELETED],
    Status.MAINTENANCE: [Status.INACTIVE, Status.ACTIVE, Status.DRAFT, Status.DELETED],
    Status.APPROVED:    [Status.COMPLETED, Status.APPROVED, Status.REJECTED],
}

# Requesting one of these through an update or a delete needs superadmin rights
RESTRICTED_STATUSES = (Status.DELETED, Status.COMPLETED)

# A record sitting in one of these counts as a guarded status change for
# dependency checks
DISALLOWED_UPDATE_STATUSES = (Status.COMPLETED, Status.DELETED, Status.REJECTED)


# ── Search parameters ────────────────────────────────────────────────────────

PAGINATION_PARAMS = ("page", "page_size", "sort_by", "sort_dir")
SORT_DIRECTIONS = ("asc", "desc")
