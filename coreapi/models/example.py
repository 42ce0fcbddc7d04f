"""
Core REST API
Example domain models.

Models:
    - Example: the reference lifecycle-managed record exposed by example_bp
    - ExampleItem: child rows referencing an Example (dependency guard target)

Copy ``Example`` as the starting point for a new resource.
"""

from coreapi.core.constants import (
    DETAIL_INFO,
    OPTIMISTIC_LOCK,
    SCENARIO_CREATE,
    SCENARIO_DELETE,
    SCENARIO_UPDATE,
)
from coreapi.models import db
from coreapi.models.record import Dependency, FieldSet, RecordMixin


class Example(RecordMixin, db.Model):
    """Generic named record."""

    __tablename__ = "example"

    name = db.Column(db.String(255), nullable=False)

    scenario_fields = {
        SCENARIO_CREATE: FieldSet(allowed=("name", "status", DETAIL_INFO), required=("name",)),
        SCENARIO_UPDATE: FieldSet(
            allowed=("id", "name", "status", DETAIL_INFO, OPTIMISTIC_LOCK),
            required=("id", OPTIMISTIC_LOCK),
        ),
        SCENARIO_DELETE: FieldSet(allowed=("id", OPTIMISTIC_LOCK), required=("id", OPTIMISTIC_LOCK)),
    }
    dependencies = (
        Dependency("example_item", ("example_id",)),
        Dependency("example_item", ("linked_example_ids",), in_array=True),
    )
    search_fields = ("id", "name", "status")

    items = db.relationship("ExampleItem", backref="example", lazy="dynamic")

    def to_dict(self):
        return {**self.base_dict(), "name": self.name}


class ExampleItem(RecordMixin, db.Model):
    """Line belonging to an Example."""

    __tablename__ = "example_item"

    example_id = db.Column(
        db.Integer, db.ForeignKey("example.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    # Further examples this line refers to, as a JSON array of ids
    linked_example_ids = db.Column(db.JSON, nullable=True)

    scenario_fields = {
        SCENARIO_CREATE: FieldSet(
            allowed=("example_id", "name", "linked_example_ids", "status", DETAIL_INFO),
            required=("example_id", "name"),
        ),
        SCENARIO_UPDATE: FieldSet(
            allowed=("id", "name", "linked_example_ids", "status", DETAIL_INFO, OPTIMISTIC_LOCK),
            required=("id", OPTIMISTIC_LOCK),
        ),
    }
    search_fields = ("id", "example_id", "name", "status")

    def to_dict(self):
        return {
            **self.base_dict(),
            "example_id": self.example_id,
            "name": self.name,
            "linked_example_ids": self.linked_example_ids,
        }
