"""Initial schema — workers, work items, assignment records.

Revision ID: 001
Revises: None
Create Date: 2026-02-27
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Workers
    op.create_table(
        "workers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(100), nullable=True),
        sa.Column(
            "languages", ARRAY(sa.String(50)), nullable=False, server_default="{}"
        ),
        sa.Column("capacity_per_day", sa.Integer, nullable=False, server_default="60"),
        sa.Column("assigned_count_today", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "last_reset_date", sa.Date, nullable=False, server_default=sa.func.current_date()
        ),
        sa.Column("last_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "affinity_tags", ARRAY(sa.String(100)), nullable=False, server_default="{}"
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("capacity_per_day > 0", name="ck_workers_capacity_positive"),
        sa.CheckConstraint("assigned_count_today >= 0", name="ck_workers_count_non_negative"),
    )
    op.create_index(
        "idx_workers_affinity_tags", "workers", ["affinity_tags"], postgresql_using="gin"
    )

    # Work items
    op.create_table(
        "work_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("city", sa.String(200), nullable=True),
        sa.Column("affinity_key", sa.String(100), nullable=True),
        sa.Column("lead_source", sa.String(100), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column(
            "received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "assigned_worker_id", sa.Integer, sa.ForeignKey("workers.id"), nullable=True
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_work_items_phone_created", "work_items", ["phone", "created_at"])
    op.create_index("idx_work_items_assigned_worker", "work_items", ["assigned_worker_id"])
    op.create_index("idx_work_items_created_at", "work_items", ["created_at"])

    # Assignment records (append-only audit trail)
    op.create_table(
        "assignment_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "work_item_id",
            sa.Integer,
            sa.ForeignKey("work_items.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("worker_id", sa.Integer, sa.ForeignKey("workers.id"), nullable=False),
        sa.Column("reason_code", sa.Text, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "reason_code IN ('affinity_round_robin', 'global_round_robin', "
            "'capacity_overflow_fallback')",
            name="ck_assignment_records_reason_code",
        ),
    )
    op.create_index("idx_assignment_records_worker", "assignment_records", ["worker_id"])
    op.create_index("idx_assignment_records_created_at", "assignment_records", ["created_at"])


def downgrade() -> None:
    op.drop_table("assignment_records")
    op.drop_table("work_items")
    op.drop_table("workers")
