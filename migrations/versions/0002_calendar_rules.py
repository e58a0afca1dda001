"""Working hours, slot periods and doctor time-off."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "0002_calendar_rules"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = set(inspector.get_table_names())

    if "doctor_working_hours" not in tables:
        op.create_table(
            "doctor_working_hours",
            sa.Column("doctor_id", sa.Text(), sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
            sa.Column("day_of_week", sa.Integer(), nullable=False),
            sa.Column("start_time", sa.Text(), nullable=False),
            sa.Column("end_time", sa.Text(), nullable=False),
            sa.Column("updated_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
            sa.PrimaryKeyConstraint("doctor_id", "day_of_week"),
            sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_working_hours_day"),
        )

    if "doctor_slot_periods" not in tables:
        op.create_table(
            "doctor_slot_periods",
            sa.Column(
                "doctor_id", sa.Text(), sa.ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True
            ),
            sa.Column("period_minutes", sa.Integer(), nullable=False),
            sa.Column("updated_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
        )

    if "doctor_time_off" not in tables:
        op.create_table(
            "doctor_time_off",
            sa.Column("id", sa.Text(), primary_key=True),
            sa.Column("doctor_id", sa.Text(), sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
            sa.Column("starts_at", sa.Text(), nullable=False),
            sa.Column("ends_at", sa.Text(), nullable=False),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
            sa.Column("updated_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
            sa.CheckConstraint("starts_at < ends_at", name="ck_time_off_window"),
        )

    existing = {idx["name"] for idx in sa.inspect(bind).get_indexes("doctor_time_off")}
    if "idx_time_off_doctor_window" not in existing:
        op.create_index("idx_time_off_doctor_window", "doctor_time_off", ["doctor_id", "starts_at", "ends_at"])


def downgrade() -> None:
    op.drop_index("idx_time_off_doctor_window", "doctor_time_off")
    op.drop_table("doctor_time_off")
    op.drop_table("doctor_slot_periods")
    op.drop_table("doctor_working_hours")
