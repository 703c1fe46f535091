from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, List, NoReturn, Optional

import typer

from casetracker.attachments import encode_uploads, format_file_size, upload_from_path
from casetracker.auth import AuthService, PasswordHasher
from casetracker.cases import CaseStore, backup_filename, dump_export, import_data
from casetracker.config import Settings
from casetracker.dates import format_date, format_date_time, local_now
from casetracker.errors import ValidationError
from casetracker.hearings import (
    case_stats,
    filter_cases,
    hearing_summary,
    reconstruct_hearings,
    relative_label,
    sort_cases_by_hearing_date,
    timeline,
    upcoming_alerts,
    urgency_class,
)
from casetracker.notifications import (
    AlertPoller,
    HearingNotification,
    HearingNotifier,
    NotificationSettingsStore,
    alert_banner,
    countdown_text,
)
from casetracker.storage import SqlKeyValueStore, create_session_factory, init_db
from casetracker.types import Attachment, Case, HearingOutcome, NotificationSettings, Urgency, User

app = typer.Typer(help="Legal case tracker: cases, hearing history and hearing alerts")


@dataclass
class Services:
    settings: Settings
    auth: AuthService
    cases: CaseStore
    notification_settings: NotificationSettingsStore


@app.callback()
def configure(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    db_url: Optional[str] = typer.Option(None, envvar="CASETRACKER_DATABASE_URL"),
) -> None:
    settings = Settings()
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    ctx.obj = _build_services(settings, db_url or settings.database_url)


def _build_services(settings: Settings, database_url: str) -> Services:
    session_factory, engine = create_session_factory(database_url)
    init_db(engine)
    store = SqlKeyValueStore(session_factory)

    auth = AuthService(store, PasswordHasher(rounds=settings.password_hash_rounds))
    if settings.seed_demo_user:
        auth.ensure_default_user()

    notification_settings = NotificationSettingsStore(
        store,
        NotificationSettings(
            enabled=settings.notifications_enabled,
            check_interval_ms=settings.notification_check_interval_ms,
            alert_days=list(settings.notification_alert_days),
        ),
    )
    notification_settings.ensure_defaults()
    return Services(
        settings=settings,
        auth=auth,
        cases=CaseStore(store, auth),
        notification_settings=notification_settings,
    )


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _require_user(services: Services) -> User:
    user = services.auth.current_user()
    if user is None:
        _fail("Not logged in. Run `casetracker login` first.")
    return user


def _encode_files(paths: list[Path] | None, max_bytes: int) -> list[Attachment]:
    if not paths:
        return []
    try:
        uploads = [upload_from_path(path) for path in paths]
        return asyncio.run(encode_uploads(uploads, max_bytes=max_bytes))
    except OSError as exc:
        _fail(f"Error reading files: {exc}")
    except ValidationError as exc:
        _fail(str(exc))


def _require_case(result: Case | None, message: str) -> Case:
    if result is None:
        _fail(message)
    return result


def _case_line(case: Case) -> str:
    urgency = urgency_class(case, local_now())
    marker = "" if urgency is Urgency.NONE else f" [{urgency.value}]"
    hearing = ""
    if case.next_hearing_date:
        hearing = (
            f" | next hearing {format_date_time(case.next_hearing_date, case.next_hearing_time)}"
            f" ({relative_label(case.next_hearing_date, local_now())})"
        )
    return f"{case.id}  {case.case_number} - {case.case_title} [{case.status}]{hearing}{marker}"


def _echo_notification(notification: HearingNotification) -> None:
    body = notification.body.replace("\n", " | ")
    typer.echo(f"{notification.title} {body}")


@app.command()
def register(
    ctx: typer.Context,
    username: str = typer.Argument(...),
    email: str = typer.Argument(...),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
) -> None:
    services: Services = ctx.obj
    result = services.auth.register(username, email, password)
    if not result.success:
        _fail(result.error or "Registration failed")
    typer.echo(f"Registered and logged in as {username}")


@app.command()
def login(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Username or email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    services: Services = ctx.obj
    if not services.auth.login(identifier, password):
        _fail("Invalid username or password")
    typer.echo("Login successful!")


@app.command()
def logout(ctx: typer.Context) -> None:
    services: Services = ctx.obj
    services.auth.logout()
    typer.echo("Logged out")


@app.command()
def whoami(ctx: typer.Context) -> None:
    user = _require_user(ctx.obj)
    typer.echo(f"{user.username} <{user.email}>")


@app.command("add-case")
def add_case(
    ctx: typer.Context,
    case_number: str = typer.Option(..., "--number"),
    case_title: str = typer.Option(..., "--title"),
    client_name: str = typer.Option("", "--client"),
    court_name: str = typer.Option("", "--court"),
    judge_name: str = typer.Option("", "--judge"),
    case_type: str = typer.Option("", "--type"),
    ipc_section: str = typer.Option("", "--ipc"),
    bns_section: str = typer.Option("", "--bns"),
    status: str = typer.Option("active", "--status"),
    next_hearing_date: Optional[str] = typer.Option(None, "--hearing-date", help="YYYY-MM-DD"),
    next_hearing_time: Optional[str] = typer.Option(None, "--hearing-time", help="HH:MM"),
    description: str = typer.Option("", "--description"),
    files: Optional[List[Path]] = typer.Option(None, "--file", exists=True, dir_okay=False),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    attachments = _encode_files(files, services.settings.max_attachment_bytes)
    fields: dict[str, Any] = {
        "case_number": case_number,
        "case_title": case_title,
        "client_name": client_name,
        "court_name": court_name,
        "judge_name": judge_name,
        "case_type": case_type,
        "ipc_section": ipc_section,
        "bns_section": bns_section,
        "status": status,
        "next_hearing_date": next_hearing_date,
        "next_hearing_time": next_hearing_time,
        "description": description,
        "files": attachments,
    }
    try:
        case = services.cases.add_case(user.id, fields)
    except ValidationError as exc:
        _fail(str(exc))
    case = _require_case(case, "Failed to add case; data was not saved")
    typer.echo(f"Case added successfully! id={case.id}")


@app.command("list-cases")
def list_cases(
    ctx: typer.Context,
    search: str = typer.Option("", "--search"),
    status: str = typer.Option("all", "--status"),
    window: str = typer.Option("all", "--window", help="all|none|today|week|month"),
    descending: bool = typer.Option(False, "--desc"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    cases = services.cases.list_cases(user.id)
    try:
        filtered = filter_cases(cases, search=search, status=status, window=window, now=local_now())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    stats = case_stats(cases)
    typer.echo(f"Total {stats.total} | active {stats.active} | postponed {stats.postponed} | closed {stats.closed}")
    if not filtered:
        typer.echo("No cases found")
        return
    for case in sort_cases_by_hearing_date(filtered, ascending=not descending):
        typer.echo(_case_line(case))


@app.command("show-case")
def show_case(ctx: typer.Context, case_id: str = typer.Argument(...)) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    case = _require_case(services.cases.get_case(user.id, case_id), "Case not found")
    now = local_now()

    typer.echo(_case_line(case))
    for label, value in (
        ("Client", case.client_name),
        ("Court", case.court_name),
        ("Judge", case.judge_name),
        ("Case type", case.case_type),
        ("IPC section", case.ipc_section),
        ("BNS section", case.bns_section),
        ("Description", case.description),
    ):
        typer.echo(f"  {label}: {value or 'N/A'}")
    for attachment in case.files:
        typer.echo(f"  File: {attachment.name} ({format_file_size(attachment.size_bytes)})")

    summary = hearing_summary(case, now)
    typer.echo(f"Hearings: {summary.completed} completed, {summary.upcoming} upcoming, {summary.total} total")
    for hearing in reconstruct_hearings(case, now):
        state = "completed" if hearing.is_completed else "pending"
        outcome = f" - {hearing.outcome}" if hearing.outcome else ""
        typer.echo(f"  {format_date_time(hearing.hearing_date, hearing.hearing_time)} [{state}]{outcome}")

    typer.echo("History:")
    for entry in timeline(case.history):
        when = format_date_time(entry.effective_date, entry.hearing_time) if entry.hearing_date else format_date(entry.date)
        details = f": {entry.description}" if entry.description else ""
        typer.echo(f"  {when}  {entry.event}{details}  (id={entry.id})")
        for attachment in entry.files:
            typer.echo(f"    File: {attachment.name} ({format_file_size(attachment.size_bytes)})")


@app.command("update-case")
def update_case(
    ctx: typer.Context,
    case_id: str = typer.Argument(...),
    case_title: Optional[str] = typer.Option(None, "--title"),
    client_name: Optional[str] = typer.Option(None, "--client"),
    court_name: Optional[str] = typer.Option(None, "--court"),
    judge_name: Optional[str] = typer.Option(None, "--judge"),
    status: Optional[str] = typer.Option(None, "--status"),
    description: Optional[str] = typer.Option(None, "--description"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    changes = {
        name: value
        for name, value in {
            "case_title": case_title,
            "client_name": client_name,
            "court_name": court_name,
            "judge_name": judge_name,
            "status": status,
            "description": description,
        }.items()
        if value is not None
    }
    if not changes:
        raise typer.BadParameter("Nothing to update")
    try:
        case = services.cases.update_case(user.id, case_id, changes)
    except ValidationError as exc:
        _fail(str(exc))
    _require_case(case, "Failed to update case")
    typer.echo("Case updated successfully!")


@app.command("delete-case")
def delete_case(
    ctx: typer.Context,
    case_id: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    if not yes:
        typer.confirm("Are you sure you want to delete this case?", abort=True)
    if not services.cases.delete_case(user.id, case_id):
        _fail("Failed to delete case")
    typer.echo("Case deleted")


@app.command("add-history")
def add_history(
    ctx: typer.Context,
    case_id: str = typer.Argument(...),
    event: str = typer.Option(..., "--event"),
    date: Optional[str] = typer.Option(None, "--date", help="Defaults to now"),
    description: str = typer.Option("", "--description"),
    hearing_date: Optional[str] = typer.Option(None, "--hearing-date"),
    hearing_time: Optional[str] = typer.Option(None, "--hearing-time"),
    outcome: Optional[str] = typer.Option(None, "--outcome"),
    status: Optional[str] = typer.Option(None, "--status"),
    next_hearing_date: Optional[str] = typer.Option(None, "--next-hearing-date"),
    next_hearing_time: Optional[str] = typer.Option(None, "--next-hearing-time"),
    files: Optional[List[Path]] = typer.Option(None, "--file", exists=True, dir_okay=False),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    attachments = _encode_files(files, services.settings.max_attachment_bytes)
    entry = {
        "event": event,
        "date": date,
        "description": description,
        "hearing_date": hearing_date,
        "hearing_time": hearing_time,
        "outcome": outcome,
        "status": status,
        "next_hearing_date": next_hearing_date,
        "next_hearing_time": next_hearing_time,
        "files": attachments,
    }
    try:
        case = services.cases.append_history(user.id, case_id, entry)
    except ValidationError as exc:
        _fail(str(exc))
    _require_case(case, "Failed to add history entry")
    typer.echo("History entry added successfully!")


@app.command("schedule-hearing")
def schedule_hearing(
    ctx: typer.Context,
    case_id: str = typer.Argument(...),
    hearing_date: str = typer.Argument(..., help="YYYY-MM-DD"),
    hearing_time: Optional[str] = typer.Option(None, "--time"),
    notes: str = typer.Option("", "--notes"),
    purpose: Optional[str] = typer.Option(None, "--purpose"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    try:
        case = services.cases.schedule_hearing(
            user.id, case_id, hearing_date, hearing_time, notes=notes, purpose=purpose
        )
    except ValidationError as exc:
        _fail(str(exc))
    _require_case(case, "Failed to update hearing date")
    typer.echo("Hearing date updated successfully!")


@app.command("complete-hearing")
def complete_hearing(
    ctx: typer.Context,
    case_id: str = typer.Argument(...),
    outcome: str = typer.Option(..., "--outcome"),
    description: str = typer.Option("", "--description"),
    next_hearing_date: Optional[str] = typer.Option(None, "--next-date"),
    next_hearing_time: Optional[str] = typer.Option(None, "--next-time"),
    status: Optional[str] = typer.Option(None, "--status"),
    files: Optional[List[Path]] = typer.Option(None, "--file", exists=True, dir_okay=False),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    attachments = _encode_files(files, services.settings.max_attachment_bytes)
    result = HearingOutcome(
        outcome=outcome,
        description=description,
        next_hearing_date=next_hearing_date,
        next_hearing_time=next_hearing_time,
        status=status,
        files=attachments,
    )
    try:
        case = services.cases.complete_hearing(user.id, case_id, result)
    except ValidationError as exc:
        _fail(str(exc))
    _require_case(case, "Failed to complete hearing")
    typer.echo("Hearing marked as completed!")


@app.command()
def alerts(
    ctx: typer.Context,
    watch: bool = typer.Option(False, "--watch", help="Refresh on the configured interval until interrupted"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    _echo_alerts(services, user)
    if not watch:
        return

    stop = threading.Event()
    try:
        while not stop.wait(services.settings.alert_refresh_seconds):
            _echo_alerts(services, user)
    except KeyboardInterrupt:
        stop.set()


def _echo_alerts(services: Services, user: User) -> None:
    result = upcoming_alerts(
        services.cases.list_cases(user.id),
        local_now(),
        window_days=services.settings.upcoming_window_days,
        limit=services.settings.upcoming_limit,
    )
    banner = alert_banner(result)
    if banner:
        typer.echo(f"[{banner.level}] {banner.message}")
    if not result.upcoming:
        typer.echo("No upcoming hearings")
        return
    if result.nearest:
        typer.echo(
            f"Next hearing: {result.nearest.case.case_number} ({countdown_text(result.nearest.days_until)})"
        )
    for item in result.upcoming:
        typer.echo(
            f"  {format_date(item.case.next_hearing_date)}  {item.case.case_number} - {item.case.case_title}"
            f"  {countdown_text(item.days_until)}"
        )


@app.command()
def notify(
    ctx: typer.Context,
    watch: bool = typer.Option(False, "--watch", help="Keep checking on the configured interval"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    notifier = HearingNotifier(
        services.cases,
        services.notification_settings,
        sink=_echo_notification,
        repeat_after=timedelta(hours=services.settings.notification_repeat_hours),
    )
    if not watch:
        notifier.prune(timedelta(days=services.settings.notification_retention_days))
        sent = notifier.check(user.id)
        typer.echo(f"{len(sent)} reminder(s) sent")
        return

    interval = services.notification_settings.get().check_interval_ms / 1000
    stop = threading.Event()
    try:
        AlertPoller(
            notifier,
            interval,
            retention=timedelta(days=services.settings.notification_retention_days),
        ).run(user.id, stop)
    except KeyboardInterrupt:
        stop.set()


@app.command("export")
def export_cases(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    now = local_now()
    target = output or Path(backup_filename(now))
    target.write_text(dump_export(services.cases, user, now), encoding="utf-8")
    typer.echo(f"Exported cases to {target}")


@app.command("import")
def import_cases(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False),
) -> None:
    services: Services = ctx.obj
    user = _require_user(services)
    if not import_data(services.cases, user, source.read_text(encoding="utf-8")):
        _fail("Import failed; existing cases were left unchanged")
    typer.echo(f"Imported {len(services.cases.list_cases(user.id))} case(s)")


if __name__ == "__main__":
    app()
