"""create passes, pass_registrations and wallet_push_jobs

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "passes",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_email", sa.String(length=255), nullable=True),
        sa.Column("pass_type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("pass_data", sa.JSON(), nullable=False),
        sa.Column("class_id", sa.String(length=255), nullable=True),
        sa.Column("object_id", sa.String(length=255), nullable=True),
        sa.Column("qr_code_url", sa.String(), nullable=True),
        sa.Column("pass_url", sa.String(), nullable=True),
        sa.Column("apple_pass_url", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_passes_user_email", "passes", ["user_email"])
    op.create_index("ix_passes_object_id", "passes", ["object_id"])

    op.create_table(
        "pass_registrations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("pass_id", sa.String(length=255), nullable=True),
        sa.Column("customer_program_id", sa.String(length=255), nullable=True),
        sa.Column("wallet_type", sa.String(length=20), nullable=False),
        sa.Column("google_object_id", sa.String(length=255), nullable=True),
        sa.Column("apple_serial_number", sa.String(length=255), nullable=True),
        sa.Column("apple_device_token", sa.String(length=255), nullable=True),
        sa.Column("device_library_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pass_registrations_pass_id", "pass_registrations", ["pass_id"])
    op.create_index("ix_pass_registrations_customer_program_id", "pass_registrations", ["customer_program_id"])
    op.create_index("ix_pass_registrations_apple_serial_number", "pass_registrations", ["apple_serial_number"])
    op.create_index("ix_pass_registrations_device_library_id", "pass_registrations", ["device_library_id"])

    op.create_table(
        "wallet_push_jobs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("next_run_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("locked_by", sa.String(length=100), nullable=True),
        sa.Column("locked_until", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_wallet_push_jobs_type", "wallet_push_jobs", ["type"])
    op.create_index("ix_wallet_push_jobs_next_run_at", "wallet_push_jobs", ["next_run_at"])
    op.create_index("ix_wallet_push_jobs_created_at", "wallet_push_jobs", ["created_at"])


def downgrade() -> None:
    op.drop_table("wallet_push_jobs")
    op.drop_table("pass_registrations")
    op.drop_table("passes")
