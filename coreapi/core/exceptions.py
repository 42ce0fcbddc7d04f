"""
Platform-wide exception hierarchy.

Every failure the record lifecycle can detect is raised as one of these
types at the point of detection and travels unmodified to the response
boundary, where a single Flask error handler renders it as the standard
error envelope:

    {"code": 422, "success": False, "message": "...", "errors": [...]}

Usage:
    from coreapi.core.exceptions import NotFound, ValidationFailed

    raise NotFound()
    raise ValidationFailed(errors=[{"field": "name", "message": "..."}])
"""

from coreapi.core.messages import t


class CoreError(Exception):
    """Base class for every error that maps onto an API error envelope.

    Args:
        message: Human-readable explanation. Defaults to the translated
                 ``default_message_key`` of the subclass.
        errors: Field-level breakdown, a list of ``{"field", "message"}``.
                Subclasses with ``carries_errors = False`` always drop it.
        status_code: Override of the subclass HTTP status.
    """

    status_code = 400
    default_message_key = "badRequest"
    carries_errors = True

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or t(self.default_message_key)
        self.errors = list(errors or []) if self.carries_errors else []
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {
            "code": self.status_code,
            "success": False,
            "message": self.message,
            "errors": self.errors,
        }


class ValidationFailed(CoreError):
    """A field-level constraint was violated (missing, invalid or extra field).

    Maps to HTTP 422.
    """

    status_code = 422
    default_message_key = "validationFailed"

    @classmethod
    def for_field(cls, field: str, message: str, summary: str | None = None):
        return cls(summary, errors=[{"field": field, "message": message}])


class InvalidStatusTransition(CoreError):
    """The requested status change is not in the transition table."""

    status_code = 422
    default_message_key = "invalidStatusTransition"


class LockConflict(CoreError):
    """Supplied ``lock_version`` does not match the stored one.

    Distinct from validation: the client must refetch the record, not just
    fix a field. Maps to HTTP 409.
    """

    status_code = 409
    default_message_key = "lockVersionOutdated"
    carries_errors = False


class NoEffectiveChange(CoreError):
    """An update or delete would not change anything meaningful."""

    status_code = 400
    default_message_key = "noRecordUpdated"


class DependencyBlocked(CoreError):
    """The record is referenced elsewhere and the guarded field may not change."""

    status_code = 422
    default_message_key = "validationFailed"


class PermissionDenied(CoreError):
    """The actor lacks the privilege needed for this change. HTTP 403."""

    status_code = 403
    default_message_key = "superadminOnly"
    carries_errors = False


class Unauthorized(CoreError):
    """Missing or invalid bearer token on a protected endpoint. HTTP 401."""

    status_code = 401
    default_message_key = "unauthorizedAccess"
    carries_errors = False


class NotFound(CoreError):
    """Lookup by id or filter returned nothing. HTTP 404."""

    status_code = 404
    default_message_key = "dataNotFound"
    carries_errors = False


class StorageFailure(CoreError):
    """Persistence failed for reasons outside validation (I/O, DB constraint).

    Maps to HTTP 500. The lifecycle picks the scenario specific message
    (``createRecordFailed`` / ``updateRecordFailed`` / ``deleteRecordFailed``).
    """

    status_code = 500
    default_message_key = "serverError"
    carries_errors = False
