"""add jobs table for background processing

Revision ID: 3b7e51c0a9d2
Revises:
Create Date: 2026-10-19 10:12:41.508317

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3b7e51c0a9d2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "type", sa.String(255), nullable=False, comment="Job type identifier"
        ),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
            comment="Handler parameters",
        ),
        sa.Column(
            "status",
            sa.String(50),
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|completed|failed",
        ),
        sa.Column(
            "scheduled_for",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="Earliest time the job may be dequeued",
        ),
        sa.Column(
            "attempts",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Number of claims",
        ),
        sa.Column(
            "max_attempts",
            sa.Integer,
            nullable=False,
            server_default="3",
            comment="Recorded attempt budget",
        ),
        sa.Column("last_error", sa.Text, nullable=True, comment="Last error message"),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="jobs_status_check",
        ),
    )

    # Dequeue scans pending rows by scheduled_for
    op.create_index("jobs_status_scheduled_idx", "jobs", ["status", "scheduled_for"])
    op.create_index("jobs_type_idx", "jobs", ["type"])
    op.create_index("jobs_created_at_idx", "jobs", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("jobs_created_at_idx", table_name="jobs")
    op.drop_index("jobs_type_idx", table_name="jobs")
    op.drop_index("jobs_status_scheduled_idx", table_name="jobs")
    op.drop_table("jobs")
