from __future__ import annotations

import logging
import uuid
from dataclasses import fields as dataclass_fields
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Protocol

from casetracker.dates import normalize_time, parse_timestamp, utcnow
from casetracker.errors import StorageError, ValidationError
from casetracker.storage import CASES_KEY, KeyValueStore, read_json, write_json
from casetracker.types import (
    CASE_CREATED_EVENT,
    CASE_TEXT_FIELDS,
    DEFAULT_STATUS,
    EDITABLE_CASE_FIELDS,
    HEARING_EVENT,
    HEARING_SCHEDULED_EVENT,
    Attachment,
    Case,
    HearingOutcome,
    HistoryEntry,
    User,
    attachment_from_dict,
    case_from_dict,
    case_to_dict,
)

logger = logging.getLogger(__name__)

_REQUIRED_CASE_FIELDS = ("case_number", "case_title")
_HISTORY_FIELDS = frozenset(
    {
        "event",
        "date",
        "hearing_date",
        "hearing_time",
        "outcome",
        "description",
        "status",
        "next_hearing_date",
        "next_hearing_time",
        "purpose",
        "files",
    }
)


class CurrentUserProvider(Protocol):
    def current_user(self) -> User | None:
        """Return the authenticated user, if any."""


class CaseStore:
    """
    Per-user case collection persisted as one JSON array under the `cases` key.

    Every mutation re-reads the full collection, swaps in this user's subset and writes the whole
    array back. There is no locking: the last writer wins. Lookups that miss, rejected state
    transitions and failed writes all come back as `None`/`False`; malformed input raises
    `ValidationError` before anything is read or written.
    """

    def __init__(
        self,
        store: KeyValueStore,
        auth: CurrentUserProvider | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.store = store
        self.auth = auth
        self.clock = clock
        self.id_factory = id_factory

    def list_cases(self, user_id: str | None = None) -> list[Case]:
        owner = self._resolve_user(user_id)
        if owner is None:
            return []
        return self._decode(self._load_raw(), owner)

    def get_case(self, user_id: str | None, case_id: str) -> Case | None:
        for case in self.list_cases(user_id):
            if case.id == case_id:
                return case
        return None

    def add_case(self, user_id: str | None, fields: Mapping[str, Any]) -> Case | None:
        values = _coerce_case_fields(fields, allow_history=True)
        missing = [name for name in _REQUIRED_CASE_FIELDS if not values.get(name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        owner = self._resolve_user(user_id)
        if owner is None:
            return None

        now = self.clock()
        history = values.pop("history", None)
        status = values.pop("status", None) or DEFAULT_STATUS
        case = Case(id=self.id_factory(), user_id=owner, status=status, created_at=now, updated_at=now, **values)
        if history is None:
            history = [
                HistoryEntry(
                    id=self.id_factory(),
                    event=CASE_CREATED_EVENT,
                    date=now,
                    description="Case was created in the system",
                    status=status,
                )
            ]
        case.history = history

        cases = self.list_cases(owner)
        cases.append(case)
        if not self._save(owner, cases):
            return None
        logger.info("Added case", extra={"user_id": owner, "case_id": case.id})
        return case

    def update_case(self, user_id: str | None, case_id: str, changes: Mapping[str, Any]) -> Case | None:
        values = _coerce_case_fields(changes)
        blank = [name for name in _REQUIRED_CASE_FIELDS if name in values and not values[name]]
        if blank:
            raise ValidationError(f"Required fields cannot be blank: {', '.join(blank)}")

        def apply(case: Case) -> bool:
            for name, value in values.items():
                setattr(case, name, value)
            return True

        return self._mutate(user_id, case_id, apply)

    def delete_case(self, user_id: str | None, case_id: str) -> bool:
        owner = self._resolve_user(user_id)
        if owner is None:
            return False
        cases = self.list_cases(owner)
        remaining = [case for case in cases if case.id != case_id]
        if len(remaining) == len(cases):
            logger.warning("Case not found for delete", extra={"user_id": owner, "case_id": case_id})
            return False
        if not self._save(owner, remaining):
            return False
        logger.info("Deleted case", extra={"user_id": owner, "case_id": case_id})
        return True

    def append_history(
        self,
        user_id: str | None,
        case_id: str,
        entry: Mapping[str, Any] | HistoryEntry,
    ) -> Case | None:
        new_entry = self._build_entry(entry)

        def apply(case: Case) -> bool:
            case.history.append(new_entry)
            if new_entry.status:
                case.status = new_entry.status
            if new_entry.next_hearing_date:
                case.next_hearing_date = new_entry.next_hearing_date
                case.next_hearing_time = new_entry.next_hearing_time
            return True

        return self._mutate(user_id, case_id, apply)

    def schedule_hearing(
        self,
        user_id: str | None,
        case_id: str,
        hearing_date: datetime | str,
        hearing_time: str | None = None,
        *,
        notes: str = "",
        purpose: str | None = None,
    ) -> Case | None:
        """Set the pending hearing and log a "Hearing Scheduled" entry in the same write."""

        scheduled_for = _coerce_date(hearing_date, "hearing_date")
        if scheduled_for is None:
            raise ValidationError("A hearing date is required")
        scheduled_time = normalize_time(hearing_time)

        def apply(case: Case) -> bool:
            case.next_hearing_date = scheduled_for
            case.next_hearing_time = scheduled_time
            case.history.append(
                HistoryEntry(
                    id=self.id_factory(),
                    event=HEARING_SCHEDULED_EVENT,
                    date=self.clock(),
                    hearing_date=scheduled_for,
                    hearing_time=scheduled_time,
                    description=notes.strip() or None,
                    purpose=purpose or None,
                )
            )
            return True

        return self._mutate(user_id, case_id, apply)

    def complete_hearing(self, user_id: str | None, case_id: str, outcome: HearingOutcome) -> Case | None:
        """
        Move the pending hearing into history and schedule the next one.

        Rejected (returns None, nothing written) when the case has no pending hearing.
        """

        next_date = _coerce_date(outcome.next_hearing_date, "next_hearing_date")
        next_time = normalize_time(outcome.next_hearing_time) if next_date else None
        files = _coerce_files(outcome.files)

        def apply(case: Case) -> bool:
            if case.next_hearing_date is None:
                logger.warning("No pending hearing to complete", extra={"case_id": case.id})
                return False
            case.history.append(
                HistoryEntry(
                    id=self.id_factory(),
                    event=HEARING_EVENT,
                    date=case.next_hearing_date,
                    hearing_date=case.next_hearing_date,
                    hearing_time=case.next_hearing_time,
                    outcome=outcome.outcome or None,
                    description=outcome.description or "Hearing completed",
                    status=outcome.status or case.status,
                    next_hearing_date=next_date,
                    next_hearing_time=next_time,
                    files=files,
                )
            )
            case.next_hearing_date = next_date
            case.next_hearing_time = next_time
            if outcome.status:
                case.status = outcome.status
            return True

        return self._mutate(user_id, case_id, apply)

    def edit_history_entry(
        self,
        user_id: str | None,
        case_id: str,
        entry_id: str,
        changes: Mapping[str, Any],
    ) -> Case | None:
        """
        Edit one history entry in place.

        New `files` are appended to the entry's existing attachments. A non-empty `status` also
        becomes the case status; an empty one leaves both unchanged.
        """

        unknown = set(changes) - _HISTORY_FIELDS
        if unknown:
            raise ValidationError(f"Unknown history fields: {', '.join(sorted(unknown))}")
        if "event" in changes and not str(changes["event"] or "").strip():
            raise ValidationError("History event cannot be blank")
        values = _coerce_entry_values(changes)

        def apply(case: Case) -> bool:
            entry = next((item for item in case.history if item.id == entry_id), None)
            if entry is None:
                logger.warning("History entry not found", extra={"case_id": case.id, "entry_id": entry_id})
                return False
            for name, value in values.items():
                if name == "files":
                    entry.files.extend(value)
                elif name == "status":
                    if value:
                        entry.status = value
                        case.status = value
                elif name == "date" and value is None:
                    continue
                else:
                    setattr(entry, name, value)
            return True

        return self._mutate(user_id, case_id, apply)

    def remove_entry_file(self, user_id: str | None, case_id: str, entry_id: str, file_id: str) -> Case | None:
        def apply(case: Case) -> bool:
            entry = next((item for item in case.history if item.id == entry_id), None)
            if entry is None:
                return False
            remaining = [item for item in entry.files if item.id != file_id]
            if len(remaining) == len(entry.files):
                return False
            entry.files = remaining
            return True

        return self._mutate(user_id, case_id, apply)

    def replace_cases(self, user_id: str | None, cases: Iterable[Case]) -> bool:
        owner = self._resolve_user(user_id)
        if owner is None:
            return False
        return self._save(owner, list(cases))

    def _mutate(self, user_id: str | None, case_id: str, apply: Callable[[Case], bool]) -> Case | None:
        owner = self._resolve_user(user_id)
        if owner is None:
            return None
        cases = self.list_cases(owner)
        case = next((item for item in cases if item.id == case_id), None)
        if case is None:
            logger.warning("Case not found", extra={"user_id": owner, "case_id": case_id})
            return None
        if not apply(case):
            return None
        case.updated_at = self.clock()
        if not self._save(owner, cases):
            return None
        return case

    def _resolve_user(self, user_id: str | None) -> str | None:
        if user_id:
            return user_id
        if self.auth is None:
            return None
        user = self.auth.current_user()
        return user.id if user else None

    def _load_raw(self) -> list[dict[str, Any]]:
        raw = read_json(self.store, CASES_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Stored cases record is not a list; ignoring it")
            return []
        return [item for item in raw if isinstance(item, dict)]

    @staticmethod
    def _decode(raw: list[dict[str, Any]], owner: str) -> list[Case]:
        cases: list[Case] = []
        for payload in raw:
            if payload.get("userId") != owner:
                continue
            try:
                cases.append(case_from_dict(payload))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed case record", extra={"case_id": payload.get("id")})
        return cases

    def _save(self, owner: str, cases: list[Case]) -> bool:
        ids = {case.id for case in cases}
        # Unreadable records of this user ride along untouched unless a saved case replaces them.
        others = [
            item
            for item in self._load_raw()
            if item.get("userId") != owner or (not _readable(item) and item.get("id") not in ids)
        ]
        mine = []
        for case in cases:
            case.user_id = owner
            mine.append(case_to_dict(case))
        try:
            write_json(self.store, CASES_KEY, others + mine)
        except StorageError:
            logger.exception("Failed to save cases", extra={"user_id": owner})
            return False
        return True

    def _build_entry(self, entry: Mapping[str, Any] | HistoryEntry) -> HistoryEntry:
        if isinstance(entry, HistoryEntry):
            entry = {item.name: getattr(entry, item.name) for item in dataclass_fields(entry) if item.name != "id"}
        unknown = set(entry) - _HISTORY_FIELDS
        if unknown:
            raise ValidationError(f"Unknown history fields: {', '.join(sorted(unknown))}")
        event = str(entry.get("event") or "").strip()
        if not event:
            raise ValidationError("History entries need an event label")

        values = _coerce_entry_values(entry)
        values["event"] = event
        if values.get("date") is None:
            values["date"] = self.clock()
        return HistoryEntry(id=self.id_factory(), **values)


def _readable(payload: Mapping[str, Any]) -> bool:
    try:
        case_from_dict(payload)
    except (KeyError, TypeError, ValueError):
        return False
    return True


def _coerce_date(value: Any, name: str) -> datetime | None:
    if value is None or value == "":
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationError(f"Invalid date for {name}: {value!r}")
    return parsed


def _coerce_files(items: Iterable[Any] | None) -> list[Attachment]:
    files: list[Attachment] = []
    for item in items or []:
        if isinstance(item, Attachment):
            files.append(item)
        elif isinstance(item, Mapping):
            try:
                files.append(attachment_from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"Malformed attachment: {exc}") from exc
        else:
            raise ValidationError(f"Unsupported attachment value: {item!r}")
    return files


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_entry_values(values: Mapping[str, Any]) -> dict[str, Any]:
    coerced: dict[str, Any] = {}
    for name, value in values.items():
        if name in ("date", "hearing_date", "next_hearing_date"):
            coerced[name] = _coerce_date(value, name)
        elif name in ("hearing_time", "next_hearing_time"):
            coerced[name] = normalize_time(value)
        elif name == "files":
            coerced[name] = _coerce_files(value)
        elif name == "event":
            coerced[name] = str(value or "").strip()
        else:
            coerced[name] = _optional_text(value)
    return coerced


def _coerce_case_fields(fields: Mapping[str, Any], *, allow_history: bool = False) -> dict[str, Any]:
    allowed = EDITABLE_CASE_FIELDS | ({"history"} if allow_history else frozenset())
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(f"Unknown or protected case fields: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for name, value in fields.items():
        if name in CASE_TEXT_FIELDS:
            values[name] = "" if value is None else str(value).strip()
            if name == "status" and not values[name]:
                values[name] = DEFAULT_STATUS
        elif name == "next_hearing_date":
            values[name] = _coerce_date(value, name)
        elif name == "next_hearing_time":
            values[name] = normalize_time(value)
        elif name == "files":
            values[name] = _coerce_files(value)
        elif name == "history":
            values[name] = [_coerce_history_item(item) for item in value or []]
    if "next_hearing_date" in values and values["next_hearing_date"] is None:
        values["next_hearing_time"] = None
    return values


def _coerce_history_item(item: Any) -> HistoryEntry:
    if isinstance(item, HistoryEntry):
        return item
    raise ValidationError(f"History must be a list of HistoryEntry records, got {type(item).__name__}")
