"""
Example blueprint — reference resource built on the record lifecycle.

Endpoints:
    GET    /api/v1/example/         — service index
    POST   /api/v1/example/data     — search the relational store
    POST   /api/v1/example/list     — search the MongoDB mirror
    POST   /api/v1/example/create   — create a record
    PUT    /api/v1/example/update   — update a record (id + lock_version)
    DELETE /api/v1/example/delete   — soft-delete a record (id + lock_version)

Errors are raised as ``CoreError`` subclasses and rendered by the
app-level handler.
"""

import logging

from flask import Blueprint, jsonify

from coreapi.blueprints import request_params
from coreapi.blueprints.site_bp import service_index
from coreapi.core.actor import current_actor
from coreapi.core.constants import SCENARIO_CREATE, SCENARIO_DELETE, SCENARIO_UPDATE
from coreapi.core.envelope import paginated, scenario_success
from coreapi.core.lifecycle import RecordLifecycle
from coreapi.models.example import Example
from coreapi.services.record_search import RecordSearch

logger = logging.getLogger(__name__)

example_bp = Blueprint("example_bp", __name__, url_prefix="/api/v1/example")


@example_bp.route("/", methods=["GET"])
def index():
    return jsonify(service_index())


@example_bp.route("/data", methods=["POST"])
def data():
    records, page = RecordSearch.for_model(Example).search(request_params())
    return jsonify(paginated(records, page))


@example_bp.route("/list", methods=["POST"])
def list_():
    documents, page = RecordSearch.for_model(Example).search_mirror(request_params())
    return jsonify(paginated(documents, page))


@example_bp.route("/create", methods=["POST"])
def create():
    record = RecordLifecycle.for_model(Example).create(request_params(), current_actor())
    return jsonify(scenario_success(record, SCENARIO_CREATE))


@example_bp.route("/update", methods=["PUT"])
def update():
    record = RecordLifecycle.for_model(Example).update(request_params(), current_actor())
    return jsonify(scenario_success(record, SCENARIO_UPDATE))


@example_bp.route("/delete", methods=["DELETE"])
def delete():
    record = RecordLifecycle.for_model(Example).delete(request_params(), current_actor())
    return jsonify(scenario_success(record, SCENARIO_DELETE))
