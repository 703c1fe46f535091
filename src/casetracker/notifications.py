from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from casetracker.cases import CaseStore
from casetracker.dates import format_date, local_now, normalize_time
from casetracker.errors import StorageError
from casetracker.hearings import days_until
from casetracker.storage import (
    NOTIFICATION_SETTINGS_KEY,
    NOTIFIED_CASES_KEY,
    KeyValueStore,
    read_json,
    write_json,
)
from casetracker.types import (
    CLOSED_STATUS,
    Case,
    NotificationSettings,
    UpcomingAlerts,
    notification_settings_from_dict,
    notification_settings_to_dict,
)

logger = logging.getLogger(__name__)


@dataclass
class HearingNotification:
    title: str
    body: str
    tag: str
    require_interaction: bool
    case_id: str
    days_until: int


@dataclass
class AlertBanner:
    level: str  # urgent|warning
    message: str


NotificationSink = Callable[[HearingNotification], None]


def log_sink(notification: HearingNotification) -> None:
    logger.info(
        "%s: %s",
        notification.title,
        notification.body.replace("\n", " | "),
        extra={"case_id": notification.case_id, "tag": notification.tag},
    )


class NotificationSettingsStore:
    def __init__(self, store: KeyValueStore, defaults: NotificationSettings | None = None) -> None:
        self.store = store
        self.defaults = defaults or NotificationSettings()

    def get(self) -> NotificationSettings:
        payload = read_json(self.store, NOTIFICATION_SETTINGS_KEY, None)
        if not isinstance(payload, dict):
            return self._defaults_copy()
        try:
            return notification_settings_from_dict(payload)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed notification settings")
            return self._defaults_copy()

    def _defaults_copy(self) -> NotificationSettings:
        return NotificationSettings(
            enabled=self.defaults.enabled,
            check_interval_ms=self.defaults.check_interval_ms,
            alert_days=list(self.defaults.alert_days),
        )

    def save(self, settings: NotificationSettings) -> bool:
        try:
            write_json(self.store, NOTIFICATION_SETTINGS_KEY, notification_settings_to_dict(settings))
        except StorageError:
            logger.exception("Failed to save notification settings")
            return False
        return True

    def ensure_defaults(self) -> None:
        if self.store.get(NOTIFICATION_SETTINGS_KEY) is None:
            self.save(self.defaults)


def build_notification(case: Case, days: int) -> HearingNotification:
    case_title = case.case_title or case.case_number
    when = format_date(case.next_hearing_date)
    time_of_day = normalize_time(case.next_hearing_time)
    if time_of_day:
        when = f"{when} at {time_of_day}"

    if days == 0:
        title = "Hearing Today!"
    elif days == 1:
        title = "Hearing Tomorrow!"
    else:
        title = f"Hearing in {days} days"

    return HearingNotification(
        title=title,
        body=f"Case: {case_title}\nHearing: {when}",
        tag=f"hearing-{case.id}-{days}",
        require_interaction=days <= 1,
        case_id=case.id,
        days_until=days,
    )


class HearingNotifier:
    """
    Reminder generator for pending hearings.

    A reminder fires when a case's hearing is exactly one of the configured `alert_days` away.
    Each (case, day-count) pair fires at most once per `repeat_after`; the last-fired timestamps
    live in the `notified_cases` record as epoch milliseconds.
    """

    def __init__(
        self,
        cases: CaseStore,
        settings: NotificationSettingsStore,
        *,
        sink: NotificationSink = log_sink,
        clock: Callable[[], datetime] = local_now,
        repeat_after: timedelta = timedelta(hours=12),
    ) -> None:
        self.cases = cases
        self.settings = settings
        self.sink = sink
        self.clock = clock
        self.repeat_after = repeat_after

    @property
    def store(self) -> KeyValueStore:
        return self.cases.store

    def check(self, user_id: str | None = None) -> list[HearingNotification]:
        settings = self.settings.get()
        if not settings.enabled:
            return []

        now = self.clock()
        now_ms = _epoch_ms(now)
        repeat_ms = int(self.repeat_after.total_seconds() * 1000)
        records = self._records()
        sent: list[HearingNotification] = []

        for case in self.cases.list_cases(user_id):
            if case.next_hearing_date is None or case.status == CLOSED_STATUS:
                continue
            days = days_until(case.next_hearing_date, now)
            if days is None or days < 0 or days not in settings.alert_days:
                continue

            key = f"{case.id}-{days}"
            last = records.get(key)
            if last is not None and now_ms - last <= repeat_ms:
                continue

            notification = build_notification(case, days)
            self.sink(notification)
            records[key] = now_ms
            sent.append(notification)

        if sent:
            self._save_records(records)
        return sent

    def prune(self, max_age: timedelta = timedelta(days=7)) -> int:
        """Drop reminder records older than `max_age`; returns how many were removed."""

        records = self._records()
        cutoff = _epoch_ms(self.clock()) - int(max_age.total_seconds() * 1000)
        kept = {key: value for key, value in records.items() if value >= cutoff}
        removed = len(records) - len(kept)
        if removed:
            self._save_records(kept)
        return removed

    def _records(self) -> dict[str, int]:
        payload = read_json(self.store, NOTIFIED_CASES_KEY, {})
        if not isinstance(payload, dict):
            return {}
        records: dict[str, int] = {}
        for key, value in payload.items():
            try:
                records[str(key)] = int(value)
            except (TypeError, ValueError):
                continue
        return records

    def _save_records(self, records: dict[str, int]) -> None:
        try:
            write_json(self.store, NOTIFIED_CASES_KEY, records)
        except StorageError:
            logger.exception("Failed to save notification records")


class AlertPoller:
    """Re-runs the notifier on a fixed interval until `stop` is set."""

    def __init__(
        self,
        notifier: HearingNotifier,
        interval_seconds: float,
        *,
        retention: timedelta = timedelta(days=7),
    ) -> None:
        self.notifier = notifier
        self.interval_seconds = interval_seconds
        self.retention = retention

    def run(self, user_id: str | None, stop: threading.Event, *, max_runs: int | None = None) -> int:
        runs = 0
        self.notifier.prune(self.retention)
        while not stop.is_set():
            sent = self.notifier.check(user_id)
            runs += 1
            logger.debug("Notification check complete", extra={"run": runs, "sent": len(sent)})
            if max_runs is not None and runs >= max_runs:
                break
            if stop.wait(self.interval_seconds):
                break
        return runs


def countdown_text(days: int) -> str:
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    return f"{days} days"


def alert_banner(alerts: UpcomingAlerts) -> AlertBanner | None:
    if alerts.urgent:
        count = len(alerts.urgent)
        noun = "hearing" if count == 1 else "hearings"
        return AlertBanner("urgent", f"You have {count} {noun} today or tomorrow!")
    if alerts.soon:
        count = len(alerts.soon)
        noun = "hearing" if count == 1 else "hearings"
        return AlertBanner("warning", f"You have {count} {noun} in the next 3 days")
    return None


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)
