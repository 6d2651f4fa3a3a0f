"""create reminders table

Revision ID: 20240101_01
Revises: None
Create Date: 2024-01-01
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20240101_01"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "reminders",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("appointment_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="EMAIL"),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # Several rows per appointment are possible after a partial retry
    op.create_index("ix_reminders_appointment_id", "reminders", ["appointment_id"])


def downgrade() -> None:
    op.drop_index("ix_reminders_appointment_id", table_name="reminders")
    op.drop_table("reminders")
