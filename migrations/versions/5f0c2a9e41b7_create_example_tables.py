"""create_example_tables

Create the `example` record table and its `example_item` child table.

Both carry the shared record columns (status, lock_version, detail_info,
sync_mdb). `example_item.example_id` is RESTRICT so a referenced example
can only be soft-deleted.

Revision ID: 5f0c2a9e41b7
Revises:
Create Date: 2026-10-16 09:12:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5f0c2a9e41b7"
down_revision = None
branch_labels = None
depends_on = None


def _record_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="1",
                  comment="Optimistic Locking"),
        sa.Column("detail_info", sa.JSON(), nullable=True),
        sa.Column("sync_mdb", sa.Integer(), nullable=True, comment="1: unsync, null: synced"),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "example" not in existing_tables:
        op.create_table(
            "example",
            *_record_columns(),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_example_status", "example", ["status"])

    if "example_item" not in existing_tables:
        op.create_table(
            "example_item",
            *_record_columns(),
            sa.Column("example_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("linked_example_ids", sa.JSON(), nullable=True),
            sa.ForeignKeyConstraint(["example_id"], ["example.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_example_item_status", "example_item", ["status"])
        op.create_index("ix_example_item_example_id", "example_item", ["example_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "example_item" in existing_tables:
        op.drop_index("ix_example_item_example_id", table_name="example_item")
        op.drop_index("ix_example_item_status", table_name="example_item")
        op.drop_table("example_item")

    if "example" in existing_tables:
        op.drop_index("ix_example_status", table_name="example")
        op.drop_table("example")
