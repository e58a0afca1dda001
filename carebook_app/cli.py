"""Flask CLI commands for migrations, the doctor directory and staff follow-up."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import AppGroup, with_appcontext

from carebook_app.services.doctors import list_doctors, register_doctor, slugify
from carebook_app.services.ledger import list_expired_pending
from carebook_app.services.migrations import run_migrations


def register_cli(app) -> None:
    db_group = AppGroup("db")

    @db_group.command("upgrade")
    @with_appcontext
    def upgrade() -> None:
        try:
            run_migrations(current_app)
        except RuntimeError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo("Database upgraded to head.")

    app.cli.add_command(db_group)

    doctors_group = AppGroup("doctors")

    @doctors_group.command("add")
    @click.argument("label")
    @click.option("--id", "doctor_id", default=None, help="Doctor id (defaults to a slug of LABEL)")
    @click.option("--hospital", default=None, help="Hospital the doctor belongs to")
    @with_appcontext
    def add_doctor(label: str, doctor_id: str | None, hospital: str | None) -> None:
        doctor = register_doctor(doctor_id or slugify(label), label.strip(), hospital)
        click.echo(f"Doctor '{doctor['label']}' registered as {doctor['id']}.")

    @doctors_group.command("list")
    @click.option("--hospital", default=None)
    @with_appcontext
    def show_doctors(hospital: str | None) -> None:
        doctors = list_doctors(hospital)
        if not doctors:
            click.echo("No doctors registered.")
            return
        for doctor in doctors:
            click.echo(f"{doctor['id']}\t{doctor['label']}\t{doctor['hospital_id'] or '-'}")

    app.cli.add_command(doctors_group)

    appointments_group = AppGroup("appointments")

    @appointments_group.command("expired")
    @click.option("--doctor", "doctor_id", default=None, help="Only list this doctor's appointments")
    @with_appcontext
    def expired(doctor_id: str | None) -> None:
        """List PENDING appointments whose slot has passed, for re-allotment."""
        rows = list_expired_pending(doctor_id)
        if not rows:
            click.echo("No expired pending appointments.")
            return
        for row in rows:
            click.echo(f"{row['id']}\t{row['doctor_id']}\t{row['patient_id']}\t{row['date']} {row['time']}")

    app.cli.add_command(appointments_group)
