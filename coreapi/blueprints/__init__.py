"""
Core REST API
Blueprint registry.
"""

from flask import request


def request_params():
    """Request parameters: the JSON body, falling back to form data.

    Query-string values are merged underneath for GET requests.
    """
    body = request.get_json(silent=True)
    if body is None:
        body = request.form.to_dict() if request.form else {}
    if request.method == "GET" and isinstance(body, dict):
        return {**request.args.to_dict(), **body}
    return body
