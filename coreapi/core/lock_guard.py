"""
Optimistic lock pre-check.

Only compares versions. The increment itself happens in the store's
compare-and-swap write (``UPDATE ... WHERE lock_version = :expected``),
which also reports a lost race as ``LockConflict``.
"""

import logging

from coreapi.core.constants import OPTIMISTIC_LOCK
from coreapi.core.exceptions import LockConflict, ValidationFailed
from coreapi.core.messages import t

logger = logging.getLogger(__name__)


def parse_version(supplied) -> int:
    """Coerce a client-supplied lock version, raising ValidationFailed."""
    if supplied is None or supplied == "":
        raise ValidationFailed.for_field(OPTIMISTIC_LOCK, t("required", label=OPTIMISTIC_LOCK))
    if isinstance(supplied, int) and not isinstance(supplied, bool):
        return supplied
    if isinstance(supplied, str) and supplied.strip().isdigit():
        return int(supplied)
    raise ValidationFailed.for_field(OPTIMISTIC_LOCK, t("integer", label=OPTIMISTIC_LOCK))


def check_version(stored: int, supplied) -> int:
    """Raise LockConflict unless ``supplied`` equals ``stored``.

    Returns the parsed version so callers can pass it on as the expected
    value of the compare-and-swap write.
    """
    version = parse_version(supplied)
    if version != stored:
        logger.warning("Lock conflict: stored=%s supplied=%s", stored, version)
        raise LockConflict()
    return version
