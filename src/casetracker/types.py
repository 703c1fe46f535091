from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from casetracker.dates import normalize_time, parse_timestamp, to_iso

HEARING_EVENT = "Hearing"
CASE_CREATED_EVENT = "Case Created"
HEARING_SCHEDULED_EVENT = "Hearing Scheduled"
CLOSED_STATUS = "closed"
DEFAULT_STATUS = "active"


class Urgency(str, Enum):
    NONE = "none"
    WARNING = "warning"
    SOON = "soon"
    URGENT = "urgent"


@dataclass(slots=True)
class User:
    id: str
    username: str
    email: str
    password: str | None
    created_at: datetime | None


@dataclass(slots=True)
class Attachment:
    id: str
    name: str
    mime_type: str | None
    size_bytes: int
    data: str
    uploaded_at: datetime | None


@dataclass(slots=True)
class HistoryEntry:
    id: str
    event: str
    date: datetime | None
    hearing_date: datetime | None = None
    hearing_time: str | None = None
    outcome: str | None = None
    description: str | None = None
    status: str | None = None
    next_hearing_date: datetime | None = None
    next_hearing_time: str | None = None
    purpose: str | None = None
    files: list[Attachment] = field(default_factory=list)

    @property
    def effective_date(self) -> datetime | None:
        return self.hearing_date or self.date


@dataclass(slots=True)
class Case:
    id: str
    user_id: str
    case_number: str
    case_title: str
    client_name: str = ""
    court_name: str = ""
    judge_name: str = ""
    case_type: str = ""
    ipc_section: str = ""
    bns_section: str = ""
    description: str = ""
    status: str = DEFAULT_STATUS
    next_hearing_date: datetime | None = None
    next_hearing_time: str | None = None
    files: list[Attachment] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


# Fields callers may set through add/update; identity and timestamps are owned by the store.
CASE_TEXT_FIELDS = (
    "case_number",
    "case_title",
    "client_name",
    "court_name",
    "judge_name",
    "case_type",
    "ipc_section",
    "bns_section",
    "description",
    "status",
)
EDITABLE_CASE_FIELDS = frozenset(CASE_TEXT_FIELDS + ("next_hearing_date", "next_hearing_time", "files"))


@dataclass(slots=True)
class HearingRecord:
    """A hearing as shown on a case timeline: completed history entries plus the pending one."""

    id: str
    event: str
    date: datetime | None
    hearing_date: datetime
    hearing_time: str | None
    description: str | None
    outcome: str | None
    status: str | None
    next_hearing_date: datetime | None
    next_hearing_time: str | None
    files: list[Attachment]
    is_completed: bool
    is_past: bool
    is_current: bool = False


@dataclass(slots=True)
class HearingOutcome:
    """Caller-supplied result of a hearing passed to ``CaseStore.complete_hearing``."""

    outcome: str | None = None
    description: str | None = None
    next_hearing_date: datetime | str | None = None
    next_hearing_time: str | None = None
    status: str | None = None
    files: list[Attachment] = field(default_factory=list)


@dataclass(slots=True)
class UpcomingHearing:
    case: Case
    days_until: int


@dataclass(slots=True)
class UpcomingAlerts:
    upcoming: list[UpcomingHearing] = field(default_factory=list)
    urgent: list[Case] = field(default_factory=list)
    soon: list[Case] = field(default_factory=list)
    nearest: UpcomingHearing | None = None


@dataclass(slots=True)
class NotificationSettings:
    enabled: bool = True
    check_interval_ms: int = 3_600_000
    alert_days: list[int] = field(default_factory=lambda: [7, 3, 1])


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def user_from_dict(payload: Mapping[str, Any]) -> User:
    return User(
        id=str(payload["id"]),
        username=_text(payload.get("username")),
        email=_text(payload.get("email")),
        password=payload.get("password"),
        created_at=parse_timestamp(payload.get("createdAt")),
    )


def user_to_dict(user: User, *, include_password: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "createdAt": to_iso(user.created_at),
    }
    if include_password:
        payload["password"] = user.password
    return payload


def attachment_from_dict(payload: Mapping[str, Any]) -> Attachment:
    size = payload.get("sizeBytes", payload.get("size"))
    return Attachment(
        id=str(payload["id"]),
        name=_text(payload.get("name")),
        mime_type=payload.get("mimeType", payload.get("type")) or None,
        size_bytes=int(size or 0),
        data=_text(payload.get("data")),
        uploaded_at=parse_timestamp(payload.get("uploadedAt")),
    )


def attachment_to_dict(attachment: Attachment) -> dict[str, Any]:
    return {
        "id": attachment.id,
        "name": attachment.name,
        "mimeType": attachment.mime_type,
        "sizeBytes": attachment.size_bytes,
        "data": attachment.data,
        "uploadedAt": to_iso(attachment.uploaded_at),
    }


def history_entry_from_dict(payload: Mapping[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        id=str(payload["id"]),
        event=_text(payload.get("event")) or "Event",
        date=parse_timestamp(payload.get("date")),
        hearing_date=parse_timestamp(payload.get("hearingDate")),
        hearing_time=normalize_time(payload.get("hearingTime")),
        outcome=_optional_text(payload.get("outcome")),
        description=_optional_text(payload.get("description")),
        status=_optional_text(payload.get("status")),
        next_hearing_date=parse_timestamp(payload.get("nextHearingDate")),
        next_hearing_time=normalize_time(payload.get("nextHearingTime")),
        purpose=_optional_text(payload.get("purpose")),
        files=[attachment_from_dict(item) for item in payload.get("files") or []],
    )


def history_entry_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "event": entry.event,
        "date": to_iso(entry.date),
        "hearingDate": to_iso(entry.hearing_date),
        "hearingTime": entry.hearing_time,
        "outcome": entry.outcome,
        "description": entry.description,
        "status": entry.status,
        "nextHearingDate": to_iso(entry.next_hearing_date),
        "nextHearingTime": entry.next_hearing_time,
        "purpose": entry.purpose,
        "files": [attachment_to_dict(item) for item in entry.files],
    }


def case_from_dict(payload: Mapping[str, Any]) -> Case:
    return Case(
        id=str(payload["id"]),
        user_id=str(payload["userId"]),
        case_number=_text(payload.get("caseNumber")),
        case_title=_text(payload.get("caseTitle")),
        client_name=_text(payload.get("clientName")),
        court_name=_text(payload.get("courtName")),
        judge_name=_text(payload.get("judgeName")),
        case_type=_text(payload.get("caseType")),
        ipc_section=_text(payload.get("ipcSection")),
        bns_section=_text(payload.get("bnsSection")),
        description=_text(payload.get("description")),
        status=_text(payload.get("status")) or DEFAULT_STATUS,
        next_hearing_date=parse_timestamp(payload.get("nextHearingDate")),
        next_hearing_time=normalize_time(payload.get("nextHearingTime")),
        files=[attachment_from_dict(item) for item in payload.get("files") or []],
        history=[history_entry_from_dict(item) for item in payload.get("history") or []],
        created_at=parse_timestamp(payload.get("createdAt")),
        updated_at=parse_timestamp(payload.get("updatedAt")),
    )


def case_to_dict(case: Case) -> dict[str, Any]:
    return {
        "id": case.id,
        "userId": case.user_id,
        "caseNumber": case.case_number,
        "caseTitle": case.case_title,
        "clientName": case.client_name,
        "courtName": case.court_name,
        "judgeName": case.judge_name,
        "caseType": case.case_type,
        "ipcSection": case.ipc_section,
        "bnsSection": case.bns_section,
        "description": case.description,
        "status": case.status,
        "nextHearingDate": to_iso(case.next_hearing_date),
        "nextHearingTime": case.next_hearing_time,
        "files": [attachment_to_dict(item) for item in case.files],
        "history": [history_entry_to_dict(item) for item in case.history],
        "createdAt": to_iso(case.created_at),
        "updatedAt": to_iso(case.updated_at),
    }


def notification_settings_from_dict(payload: Mapping[str, Any]) -> NotificationSettings:
    defaults = NotificationSettings()
    interval = payload.get("checkIntervalMs", payload.get("checkInterval"))
    alert_days = payload.get("alertDaysBeforeHearing", payload.get("alertDays"))
    return NotificationSettings(
        enabled=bool(payload.get("enabled", defaults.enabled)),
        check_interval_ms=int(interval) if interval else defaults.check_interval_ms,
        alert_days=[int(day) for day in alert_days] if alert_days else defaults.alert_days,
    )


def notification_settings_to_dict(settings: NotificationSettings) -> dict[str, Any]:
    return {
        "enabled": settings.enabled,
        "checkIntervalMs": settings.check_interval_ms,
        "alertDaysBeforeHearing": list(settings.alert_days),
    }
