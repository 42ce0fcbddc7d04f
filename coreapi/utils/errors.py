"""Standardised API error responses.

Usage
-----
    from coreapi.utils.errors import api_error, http_error

    return api_error(NotFound())                 # from a CoreError
    return http_error(405, "methodNotAllowed")   # from a plain HTTP status
"""

from __future__ import annotations

import traceback

from flask import current_app, jsonify

from coreapi.core.envelope import error_body
from coreapi.core.messages import t


def _trace_for_dev(exc: BaseException) -> dict:
    return {
        "exception": type(exc).__name__,
        "detail": str(exc),
        "trace": traceback.format_exception(type(exc), exc, exc.__traceback__),
    }


def api_error(exc):
    """Return ``(jsonify(envelope), http_status)`` for a ``CoreError``.

    Returns
    -------
    tuple[Response, int]
        Drop-in for Flask views and error handlers.
    """
    return jsonify(error_body(exc)), exc.status_code


def http_error(status: int, message_key: str, *, exc: BaseException | None = None):
    """Envelope for failures raised outside the core (routing, unexpected errors).

    In debug mode an unexpected exception is attached as ``trace_for_dev``.
    """
    body: dict = {
        "code": status,
        "success": False,
        "message": t(message_key),
        "errors": [],
    }
    if exc is not None and current_app.debug:
        body["trace_for_dev"] = _trace_for_dev(exc)
    return jsonify(body), status
