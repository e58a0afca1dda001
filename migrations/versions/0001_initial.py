"""Initial schema: doctor directory and appointment ledger."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _create_index_if_not_exists(name: str, table: str, columns: str, where: str | None = None, unique: bool = False) -> None:
    kind = "UNIQUE INDEX" if unique else "INDEX"
    clause = f" WHERE {where}" if where else ""
    op.execute(f"CREATE {kind} IF NOT EXISTS {name} ON {table}({columns}){clause}")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = set(inspector.get_table_names())

    if "doctors" not in tables:
        op.create_table(
            "doctors",
            sa.Column("id", sa.Text(), primary_key=True),
            sa.Column("label", sa.Text(), nullable=False),
            sa.Column("hospital_id", sa.Text(), nullable=True),
            sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
        )

    _create_index_if_not_exists("idx_doctors_hospital", "doctors", "hospital_id")

    if "appointments" not in tables:
        op.create_table(
            "appointments",
            sa.Column("id", sa.Text(), primary_key=True),
            sa.Column("doctor_id", sa.Text(), sa.ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
            sa.Column("patient_id", sa.Text(), nullable=False),
            sa.Column("starts_at", sa.Text(), nullable=False),
            sa.Column("status", sa.Text(), nullable=False, server_default="PENDING"),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("cancel_reason", sa.Text(), nullable=True),
            sa.Column("created_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
            sa.Column("updated_at", sa.Text(), server_default=sa.text("(datetime('now'))"), nullable=False),
            sa.CheckConstraint(
                "status IN ('PENDING','EMERGENCY','CONFIRMED','COMPLETED','CANCELLED')",
                name="ck_appointments_status",
            ),
        )

    # One live booking per doctor and start; cancelled rows free the slot.
    _create_index_if_not_exists(
        "idx_appointments_doctor_start_active",
        "appointments",
        "doctor_id, starts_at",
        where="status != 'CANCELLED'",
        unique=True,
    )
    _create_index_if_not_exists("idx_appointments_patient", "appointments", "patient_id, starts_at")
    _create_index_if_not_exists("idx_appointments_status", "appointments", "status, starts_at")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_appointments_status")
    op.execute("DROP INDEX IF EXISTS idx_appointments_patient")
    op.execute("DROP INDEX IF EXISTS idx_appointments_doctor_start_active")
    op.drop_table("appointments")
    op.execute("DROP INDEX IF EXISTS idx_doctors_hospital")
    op.drop_table("doctors")
