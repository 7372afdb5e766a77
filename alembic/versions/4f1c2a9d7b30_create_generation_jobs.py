"""create generation jobs and doctor profiles

Revision ID: 4f1c2a9d7b30
Revises:
Create Date: 2026-10-19 10:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4f1c2a9d7b30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("external_correlation_id", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("payload_ref", sa.Text(), nullable=False),
        sa.Column("result_json", sa.Text(), nullable=True),
        sa.Column("error_detail", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_polled_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("external_correlation_id", name="uq_generation_jobs_external_correlation_id"),
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_generation_jobs_progress_range"),
    )
    op.create_index("ix_generation_jobs_owner_id", "generation_jobs", ["owner_id"])
    op.create_index("ix_generation_jobs_status", "generation_jobs", ["status"])

    op.create_table(
        "doctor_profiles",
        sa.Column("owner_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("avatar_id", sa.String(length=128), nullable=True),
        sa.Column("voice_id", sa.String(length=128), nullable=True),
        sa.Column("avatar_status", sa.String(length=32), nullable=False, server_default="not_configured"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "avatar_status IN ('not_configured', 'pending', 'active', 'error')",
            name="ck_doctor_profiles_avatar_status",
        ),
    )


def downgrade() -> None:
    op.drop_table("doctor_profiles")
    op.drop_index("ix_generation_jobs_status", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_owner_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")
