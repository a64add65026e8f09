"""Initial schema - evaluation_records, unlock_requests.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "evaluation_records",
        sa.Column("record_id", sa.String(36), primary_key=True),
        sa.Column("subject_id", sa.Text(), nullable=False),
        sa.Column("evaluator_id", sa.Text(), nullable=False),
        sa.Column("project_id", sa.Text(), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("attitude", sa.Integer(), nullable=False),
        sa.Column("performance", sa.Integer(), nullable=False),
        sa.Column("quality", sa.Integer(), nullable=False),
        sa.Column("appearance", sa.Integer(), nullable=False),
        # NULL on rows written before the review workflow; read as approved
        sa.Column("status", sa.String(20), nullable=True, server_default="pending"),
        sa.Column("created_at", sa.String(50), nullable=False),
        sa.UniqueConstraint("subject_id", "date", name="uq_evaluation_records_subject_date"),
    )
    op.create_index(
        "ix_evaluation_records_project_id", "evaluation_records", ["project_id"]
    )

    op.create_table(
        "unlock_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("subject_id", sa.Text(), nullable=False),
        sa.Column("subject_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("requester_id", sa.Text(), nullable=False),
        sa.Column("requester_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("project_id", sa.Text(), nullable=False),
        sa.Column("target_record_id", sa.String(36), nullable=True),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.String(50), nullable=False),
    )
    op.create_index("ix_unlock_requests_project_id", "unlock_requests", ["project_id"])
    op.create_index(
        "ix_unlock_requests_subject_date_status",
        "unlock_requests",
        ["subject_id", "date", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_unlock_requests_subject_date_status", table_name="unlock_requests")
    op.drop_index("ix_unlock_requests_project_id", table_name="unlock_requests")
    op.drop_table("unlock_requests")
    op.drop_index("ix_evaluation_records_project_id", table_name="evaluation_records")
    op.drop_table("evaluation_records")
