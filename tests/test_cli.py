from __future__ import annotations

import json
import re
from datetime import timedelta

import pytest
from typer.testing import CliRunner

from casetracker.cli import app
from casetracker.dates import local_now


@pytest.fixture
def invoke(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()
    env = {
        "CASETRACKER_DATABASE_URL": f"sqlite:///{tmp_path / 'cli.db'}",
        "CASETRACKER_PASSWORD_HASH_ROUNDS": "4",
        "CASETRACKER_SEED_DEMO_USER": "false",
    }

    def run(*args: str):
        return runner.invoke(app, list(args), env=env)

    return run


def _add_case(invoke, *extra: str) -> str:
    result = invoke("add-case", "--number", "CRL 7/2024", "--title", "State v. Iyer", *extra)
    assert result.exit_code == 0, result.output
    match = re.search(r"id=(\S+)", result.output)
    assert match is not None
    return match.group(1)


def test_commands_require_login(invoke):
    result = invoke("list-cases")

    assert result.exit_code == 1
    assert "Not logged in" in result.output


def test_register_login_and_whoami(invoke):
    registered = invoke("register", "advocate", "adv@example.com", "--password", "secret1")
    assert registered.exit_code == 0, registered.output
    assert "Registered and logged in as advocate" in registered.output

    assert "advocate <adv@example.com>" in invoke("whoami").output
    assert invoke("logout").exit_code == 0
    assert invoke("whoami").exit_code == 1

    assert invoke("login", "adv@example.com", "--password", "wrong-pass").exit_code == 1
    logged_in = invoke("login", "advocate", "--password", "secret1")
    assert logged_in.exit_code == 0
    assert "Login successful!" in logged_in.output


def test_hearing_lifecycle(invoke):
    invoke("register", "advocate", "adv@example.com", "--password", "secret1")
    tomorrow = (local_now() + timedelta(days=1)).date().isoformat()
    case_id = _add_case(invoke, "--hearing-date", tomorrow, "--hearing-time", "11:00")

    listing = invoke("list-cases")
    assert listing.exit_code == 0
    assert "State v. Iyer" in listing.output
    assert "[urgent]" in listing.output

    alerts = invoke("alerts")
    assert "today or tomorrow" in alerts.output
    assert "Tomorrow" in alerts.output

    completed = invoke("complete-hearing", case_id, "--outcome", "Adjourned")
    assert completed.exit_code == 0, completed.output
    assert "Hearing marked as completed!" in completed.output

    again = invoke("complete-hearing", case_id, "--outcome", "Adjourned")
    assert again.exit_code == 1
    assert "Failed to complete hearing" in again.output

    shown = invoke("show-case", case_id)
    assert "[completed] - Adjourned" in shown.output
    assert "No upcoming hearings" in invoke("alerts").output


def test_add_case_rejects_bad_date(invoke):
    invoke("register", "advocate", "adv@example.com", "--password", "secret1")

    result = invoke("add-case", "--number", "X-1", "--title", "T", "--hearing-date", "someday")

    assert result.exit_code == 1
    assert "No cases found" in invoke("list-cases").output


def test_export_and_import_round_trip(invoke, tmp_path):
    invoke("register", "advocate", "adv@example.com", "--password", "secret1")
    case_id = _add_case(invoke)
    backup = tmp_path / "backup.json"

    exported = invoke("export", "--output", str(backup))
    assert exported.exit_code == 0
    assert [item["id"] for item in json.loads(backup.read_text())["cases"]] == [case_id]

    assert invoke("delete-case", case_id, "--yes").exit_code == 0
    imported = invoke("import", str(backup))
    assert imported.exit_code == 0
    assert "Imported 1 case(s)" in imported.output
    assert case_id in invoke("list-cases").output


def test_notify_reports_reminders(invoke):
    invoke("register", "advocate", "adv@example.com", "--password", "secret1")
    in_three = (local_now() + timedelta(days=3)).date().isoformat()
    _add_case(invoke, "--hearing-date", in_three)

    first = invoke("notify")
    assert "Hearing in 3 days" in first.output
    assert "1 reminder(s) sent" in first.output
    assert "0 reminder(s) sent" in invoke("notify").output
