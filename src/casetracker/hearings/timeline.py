from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from casetracker.dates import DateLike
from casetracker.hearings.deriver import days_until, reconstruct_hearings
from casetracker.types import Case, HistoryEntry

MILESTONE_EVENTS = ("Hearing", "Judgment", "Order")
HEARING_WINDOWS = ("all", "none", "today", "week", "month")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class CaseStats:
    total: int = 0
    active: int = 0
    postponed: int = 0
    closed: int = 0


@dataclass
class HearingSummary:
    completed: int
    total: int
    upcoming: int


def _effective(entry: HistoryEntry) -> datetime:
    return entry.effective_date or _EPOCH


def timeline(history: Iterable[HistoryEntry]) -> list[HistoryEntry]:
    """History newest first, keyed on hearing date when present, else entry date."""

    return sorted(history, key=_effective, reverse=True)


def milestones(case: Case) -> list[HistoryEntry]:
    return sorted((entry for entry in case.history if entry.event in MILESTONE_EVENTS), key=_effective)


def hearing_summary(case: Case, now: DateLike = None) -> HearingSummary:
    hearings = reconstruct_hearings(case, now)
    return HearingSummary(
        completed=sum(1 for hearing in hearings if hearing.is_completed),
        total=len(hearings),
        upcoming=sum(1 for hearing in hearings if not hearing.is_completed and not hearing.is_past),
    )


def filter_cases(
    cases: Iterable[Case],
    *,
    search: str = "",
    status: str = "all",
    window: str = "all",
    now: DateLike = None,
) -> list[Case]:
    """
    Dashboard filtering.

    `search` matches case number, title, client and court case-insensitively. `window` keeps
    cases whose pending hearing falls today, within 7 days (`week`) or 30 days (`month`);
    `all` and `none` disable the date filter.
    """

    if window not in HEARING_WINDOWS:
        raise ValueError(f"Unknown hearing window {window!r}; expected one of {', '.join(HEARING_WINDOWS)}")

    term = search.strip().lower()
    horizon = {"today": 0, "week": 7, "month": 30}.get(window)
    filtered: list[Case] = []
    for case in cases:
        if term and not any(
            term in value.lower() for value in (case.case_number, case.case_title, case.client_name, case.court_name)
        ):
            continue
        if status != "all" and case.status != status:
            continue
        if horizon is not None:
            days = days_until(case.next_hearing_date, now)
            if days is None or days < 0 or days > horizon:
                continue
        filtered.append(case)
    return filtered


def sort_cases_by_hearing_date(cases: Iterable[Case], ascending: bool = True) -> list[Case]:
    """Order by pending hearing date; cases without one always sort last."""

    pool = list(cases)
    dated = [case for case in pool if case.next_hearing_date is not None]
    undated = [case for case in pool if case.next_hearing_date is None]
    dated.sort(key=lambda case: case.next_hearing_date, reverse=not ascending)
    return dated + undated


def case_stats(cases: Iterable[Case]) -> CaseStats:
    stats = CaseStats()
    for case in cases:
        stats.total += 1
        if case.status == "active":
            stats.active += 1
        elif case.status == "postponed":
            stats.postponed += 1
        elif case.status == "closed":
            stats.closed += 1
    return stats


def recent_activity(cases: Iterable[Case], limit: int = 5) -> list[Case]:
    def touched(case: Case) -> datetime:
        return case.updated_at or case.created_at or _EPOCH

    return sorted(cases, key=touched, reverse=True)[:limit]


def relative_label(value: DateLike, now: DateLike = None) -> str:
    days = days_until(value, now)
    if days is None:
        return ""
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days == -1:
        return "Yesterday"
    if days > 0:
        return f"in {days} days"
    return f"{abs(days)} days ago"
