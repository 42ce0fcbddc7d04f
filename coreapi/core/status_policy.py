"""
Status transition policy.

Represents the configured transition table as an adjacency map from a
status to the set of statuses it may move to. The table is validated once,
when the policy is built from configuration.

Rules:
  - ``current == new`` is always allowed (no-op update).
  - ``Deleted -> X`` is allowed only for privileged actors, and only towards
    the configured restore destinations.
  - Anything else is allowed iff ``new`` is a registered successor of
    ``current``. A status missing from the table has no successors.

Usage:
    policy = StatusPolicy.from_config(current_app.config)
    policy.can_transition(Status.DRAFT, Status.ACTIVE, is_privileged=False)  # True
    policy.check_transition(current, new, is_privileged)  # raises on failure
"""

from collections.abc import Iterable, Mapping

from coreapi.core.constants import DEFAULT_STATUS_TRANSITIONS, RESTRICTED_STATUSES, Status
from coreapi.core.exceptions import InvalidStatusTransition, PermissionDenied
from coreapi.core.messages import t


def _as_status(value) -> Status:
    try:
        return Status(int(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unknown status in transition table: {value!r}") from exc


class StatusPolicy:
    """Pure predicate over the transition table plus typed-error helpers."""

    def __init__(
        self,
        transitions: Mapping,
        privileged_restore: Iterable | None = None,
        restricted: Iterable | None = None,
    ) -> None:
        self._successors: dict[Status, frozenset[Status]] = {
            _as_status(current): frozenset(_as_status(n) for n in nexts)
            for current, nexts in transitions.items()
        }
        if privileged_restore is None:
            privileged_restore = [s for s in Status if s is not Status.DELETED]
        self._restore = frozenset(_as_status(s) for s in privileged_restore)
        self._restricted = frozenset(
            _as_status(s) for s in (RESTRICTED_STATUSES if restricted is None else restricted)
        )

    @classmethod
    def from_config(cls, config: Mapping) -> "StatusPolicy":
        return cls(
            config.get("STATUS_TRANSITIONS") or DEFAULT_STATUS_TRANSITIONS,
            privileged_restore=config.get("PRIVILEGED_RESTORE_STATUSES"),
            restricted=config.get("RESTRICTED_STATUSES"),
        )

    # ── Queries ──────────────────────────────────────────────────────────

    def successors(self, current) -> frozenset[Status]:
        return self._successors.get(Status(current), frozenset())

    def knows(self, current) -> bool:
        return Status(current) in self._successors

    def can_transition(self, current, new, is_privileged: bool = False) -> bool:
        current, new = Status(current), Status(new)
        if current == new:
            return True
        if current is Status.DELETED:
            return is_privileged and new in self._restore
        return new in self._successors.get(current, frozenset())

    # ── Raising helpers ──────────────────────────────────────────────────

    def check_transition(self, current, new, is_privileged: bool = False) -> None:
        """Raise the typed error matching why ``current -> new`` is refused."""
        if self.can_transition(current, new, is_privileged):
            return

        current, new = Status(current), Status(new)
        if current is Status.DELETED and not is_privileged:
            raise PermissionDenied(t("deletedStatusChanged", value=current.label))

        if current is not Status.DELETED and not self.knows(current):
            message = t("invalidStatusTransition")
        else:
            message = t("cannotChangeStatus", value=current.label, newValue=new.label)
        raise InvalidStatusTransition(
            t("validationFailed"),
            errors=[{"field": "status", "message": message}],
        )

    def check_restricted(self, new, is_privileged: bool = False) -> None:
        """Non-privileged actors may not request a restricted status directly."""
        if not is_privileged and Status(new) in self._restricted:
            raise PermissionDenied(t("superadminOnly"))
