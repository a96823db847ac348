"""Create appointments table.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("tests", postgresql.ARRAY(sa.Text()), nullable=False),
        sa.Column("preferred_date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("slot_hint", sa.Text(), nullable=True),
        sa.Column("address_house_no", sa.Text(), nullable=True),
        sa.Column("address_house_name", sa.Text(), nullable=True),
        sa.Column("address_street", sa.Text(), nullable=True),
        sa.Column("address_locality", sa.Text(), nullable=True),
        sa.Column("address_city", sa.Text(), nullable=True),
        sa.Column("address_state", sa.Text(), nullable=True),
        sa.Column("address_pincode", sa.Text(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("status", sa.Text(), server_default="Received", nullable=False),
        sa.Column("fasting_required", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("last_reminder_sent_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('Received', 'Contacted', 'Confirmed', 'Completed', 'Cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "cardinality(tests) >= 1",
            name="appointments_tests_not_empty",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create indexes
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index("ix_appointments_preferred_date", "appointments", ["preferred_date"])
    op.create_index("ix_appointments_created_at", "appointments", ["created_at"])


def downgrade() -> None:
    """Downgrade database schema."""
    # Drop indexes
    op.drop_index("ix_appointments_created_at", table_name="appointments")
    op.drop_index("ix_appointments_preferred_date", table_name="appointments")
    op.drop_index("ix_appointments_status", table_name="appointments")

    # Drop table
    op.drop_table("appointments")
