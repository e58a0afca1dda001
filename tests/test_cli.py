from carebook_app.services.database import db
from carebook_app.services.doctors import get_doctor


def test_doctors_add_and_list(app, ctx):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["doctors", "add", "Dr. Sami Haddad", "--hospital", "east"])
    assert result.exit_code == 0, result.output
    assert "dr-sami-haddad" in result.output
    assert get_doctor("dr-sami-haddad")["hospital_id"] == "east"

    result = runner.invoke(args=["doctors", "list", "--hospital", "east"])
    assert result.exit_code == 0
    assert "Dr. Sami Haddad" in result.output
    assert "Dr. Lina" not in result.output


def test_expired_pending_listing(app, ctx):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["appointments", "expired"])
    assert "No expired pending appointments." in result.output

    conn = db()
    try:
        conn.execute(
            "INSERT INTO appointments(id, doctor_id, patient_id, starts_at, status, created_at, updated_at) "
            "VALUES ('old-1', 'dr-omar', 'patient-9', '2020-01-06T09:00:00', 'PENDING', datetime('now'), datetime('now'))"
        )
        conn.commit()
    finally:
        conn.close()

    result = runner.invoke(args=["appointments", "expired", "--doctor", "dr-omar"])
    assert result.exit_code == 0
    assert "old-1" in result.output
    assert "2020-01-06 09:00" in result.output


def test_db_upgrade_is_repeatable(app):
    result = app.test_cli_runner().invoke(args=["db", "upgrade"])
    assert result.exit_code == 0, result.output
