"""
Pure derivations over case snapshots: day counts, urgency, hearing lists and alert buckets.

Nothing here touches storage and nothing raises on bad dates; an unparseable or missing date is
treated as "no date set".
"""

from __future__ import annotations

from typing import Iterable

from casetracker.dates import DateLike, calendar_day, reference_time, today
from casetracker.types import (
    CLOSED_STATUS,
    HEARING_EVENT,
    Case,
    HearingRecord,
    UpcomingAlerts,
    UpcomingHearing,
    Urgency,
)


def days_until(value: DateLike, now: DateLike = None) -> int | None:
    """
    Whole calendar days from `now`'s day to `value`'s day; negative for past dates.

    Each side is read on its own calendar: `now` in its own offset (local time when omitted or
    naive), stored hearing dates as the day they were entered for.
    """

    target = calendar_day(value)
    if target is None:
        return None
    current = today(now)
    if current is None:
        return None
    return (target - current).days


def urgency_for_days(days: int | None) -> Urgency:
    if days is None or days < 0:
        return Urgency.NONE
    if days <= 1:
        return Urgency.URGENT
    if days <= 3:
        return Urgency.SOON
    if days <= 7:
        return Urgency.WARNING
    return Urgency.NONE


def urgency_class(case: Case, now: DateLike = None) -> Urgency:
    if case.status == CLOSED_STATUS or case.next_hearing_date is None:
        return Urgency.NONE
    return urgency_for_days(days_until(case.next_hearing_date, now))


def reconstruct_hearings(case: Case, now: DateLike = None) -> list[HearingRecord]:
    """
    Completed hearings from history plus the pending one, oldest first.

    Completed entries are past when their timestamp is before `now`; the pending hearing is past
    only once its calendar day is behind today's.
    """

    reference = reference_time(now) or reference_time()
    current_day = today(now) or today()
    hearings: list[HearingRecord] = []

    for entry in case.history:
        if entry.event != HEARING_EVENT or entry.hearing_date is None:
            continue
        hearings.append(
            HearingRecord(
                id=entry.id,
                event=entry.event,
                date=entry.date,
                hearing_date=entry.hearing_date,
                hearing_time=entry.hearing_time,
                description=entry.description,
                outcome=entry.outcome,
                status=entry.status,
                next_hearing_date=entry.next_hearing_date,
                next_hearing_time=entry.next_hearing_time,
                files=list(entry.files),
                is_completed=True,
                is_past=entry.hearing_date < reference,
            )
        )

    if case.next_hearing_date is not None:
        hearings.append(
            HearingRecord(
                id="current",
                event=HEARING_EVENT,
                date=case.next_hearing_date,
                hearing_date=case.next_hearing_date,
                hearing_time=case.next_hearing_time,
                description="Upcoming hearing",
                outcome=None,
                status=None,
                next_hearing_date=None,
                next_hearing_time=None,
                files=[],
                is_completed=False,
                is_past=calendar_day(case.next_hearing_date) < current_day,
                is_current=True,
            )
        )

    hearings.sort(key=lambda hearing: hearing.hearing_date)
    return hearings


def upcoming_alerts(
    cases: Iterable[Case],
    now: DateLike = None,
    *,
    window_days: int = 7,
    limit: int = 10,
) -> UpcomingAlerts:
    upcoming: list[UpcomingHearing] = []
    urgent: list[Case] = []
    soon: list[Case] = []

    for case in cases:
        if case.status == CLOSED_STATUS or case.next_hearing_date is None:
            continue
        days = days_until(case.next_hearing_date, now)
        if days is None or days < 0 or days > window_days:
            continue
        upcoming.append(UpcomingHearing(case=case, days_until=days))
        if days <= 1:
            urgent.append(case)
        elif days <= 3:
            soon.append(case)

    upcoming.sort(key=lambda item: item.case.next_hearing_date)
    return UpcomingAlerts(
        upcoming=upcoming[:limit],
        urgent=urgent,
        soon=soon,
        nearest=upcoming[0] if upcoming else None,
    )
