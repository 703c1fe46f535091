from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from casetracker.hearings import days_until, reconstruct_hearings, upcoming_alerts, urgency_class, urgency_for_days
from casetracker.types import Case, HistoryEntry, Urgency

NOW = datetime(2024, 6, 10, 9, 30, tzinfo=timezone.utc)
IST = timezone(timedelta(hours=5, minutes=30))


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def make_case(case_id: str = "case-1", **overrides) -> Case:
    values = {"id": case_id, "user_id": "user-a", "case_number": f"N-{case_id}", "case_title": "Title"}
    values.update(overrides)
    return Case(**values)


def hearing_entry(entry_id: str, when: datetime, **overrides) -> HistoryEntry:
    return HistoryEntry(id=entry_id, event="Hearing", date=when, hearing_date=when, **overrides)


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        (utc(2024, 6, 10, 23), 0),
        (utc(2024, 6, 10), 0),
        (utc(2024, 6, 11), 1),
        (utc(2024, 6, 11, 22), 1),
        ("2024-06-13", 3),
        (date(2024, 6, 17), 7),
        ("2024-06-09T18:00:00Z", -1),
        (None, None),
        ("not a date", None),
    ],
)
def test_days_until_counts_calendar_days(target, expected):
    assert days_until(target, NOW) == expected


@pytest.mark.parametrize(
    ("days", "expected"),
    [
        (0, Urgency.URGENT),
        (1, Urgency.URGENT),
        (2, Urgency.SOON),
        (3, Urgency.SOON),
        (4, Urgency.WARNING),
        (7, Urgency.WARNING),
        (8, Urgency.NONE),
        (-1, Urgency.NONE),
        (None, Urgency.NONE),
    ],
)
def test_urgency_thresholds(days, expected):
    assert urgency_for_days(days) is expected


def test_urgency_class_uses_next_hearing_and_ignores_closed_cases():
    assert urgency_class(make_case(next_hearing_date=utc(2024, 6, 11)), NOW) is Urgency.URGENT
    assert urgency_class(make_case(next_hearing_date=utc(2024, 6, 15)), NOW) is Urgency.WARNING
    assert urgency_class(make_case(next_hearing_date=utc(2024, 6, 11), status="closed"), NOW) is Urgency.NONE
    assert urgency_class(make_case(), NOW) is Urgency.NONE


def test_reconstruct_hearings_merges_history_and_pending_hearing():
    case = make_case(
        next_hearing_date=utc(2024, 6, 20),
        next_hearing_time="10:00",
        history=[
            HistoryEntry(id="seed", event="Case Created", date=utc(2024, 1, 2)),
            hearing_entry("h2", utc(2024, 5, 2), outcome="Adjourned"),
            HistoryEntry(id="sched", event="Hearing Scheduled", date=utc(2024, 5, 3), hearing_date=utc(2024, 6, 20)),
            hearing_entry("h1", utc(2024, 3, 15), outcome="Notice issued"),
            HistoryEntry(id="no-date", event="Hearing", date=utc(2024, 4, 1)),
        ],
    )

    hearings = reconstruct_hearings(case, NOW)

    assert [hearing.id for hearing in hearings] == ["h1", "h2", "current"]
    assert all(hearing.is_completed for hearing in hearings[:2])
    assert all(hearing.is_past for hearing in hearings[:2])
    current = hearings[-1]
    assert current.is_current is True
    assert current.is_completed is False
    assert current.is_past is False
    assert current.hearing_time == "10:00"


def test_reconstruct_hearings_is_ordered_and_repeatable():
    case = make_case(
        next_hearing_date=utc(2024, 4, 1),
        history=[hearing_entry(f"h{n}", utc(2024, 6, 1) - timedelta(days=n * 9)) for n in range(6)],
    )
    first = reconstruct_hearings(case, NOW)
    second = reconstruct_hearings(case, NOW)

    assert first == second
    dates = [hearing.hearing_date for hearing in first]
    assert dates == sorted(dates)


def test_pending_hearing_earlier_today_is_not_past():
    case = make_case(next_hearing_date=utc(2024, 6, 10, 8))
    (current,) = reconstruct_hearings(case, NOW)
    assert current.is_past is False

    overdue = make_case(next_hearing_date=utc(2024, 6, 9, 23))
    assert reconstruct_hearings(overdue, NOW)[0].is_past is True


def test_completed_hearing_later_today_is_not_yet_past():
    case = make_case(history=[hearing_entry("h1", utc(2024, 6, 10, 15))])
    assert reconstruct_hearings(case, NOW)[0].is_past is False


def test_tomorrow_hearing_is_urgent_and_listed():
    case = make_case("x", next_hearing_date=utc(2024, 6, 11))

    assert days_until(case.next_hearing_date, NOW) == 1
    assert urgency_class(case, NOW) is Urgency.URGENT

    alerts = upcoming_alerts([case], NOW)
    assert [item.case.id for item in alerts.upcoming] == ["x"]
    assert alerts.urgent == [case]
    assert alerts.soon == []
    assert alerts.nearest.case is case
    assert alerts.nearest.days_until == 1


def test_upcoming_alerts_buckets_sorts_and_limits():
    cases = [make_case(f"c{offset}", next_hearing_date=NOW + timedelta(days=offset)) for offset in (7, 3, 0, 2, 5)]
    cases += [
        make_case("far", next_hearing_date=NOW + timedelta(days=8)),
        make_case("past", next_hearing_date=NOW - timedelta(days=1)),
        make_case("closed", status="closed", next_hearing_date=NOW + timedelta(days=1)),
        make_case("unset"),
    ]

    alerts = upcoming_alerts(cases, NOW)

    assert [item.case.id for item in alerts.upcoming] == ["c0", "c2", "c3", "c5", "c7"]
    assert [item.days_until for item in alerts.upcoming] == [0, 2, 3, 5, 7]
    assert [case.id for case in alerts.urgent] == ["c0"]
    assert sorted(case.id for case in alerts.soon) == ["c2", "c3"]
    assert alerts.nearest.case.id == "c0"


def test_upcoming_alerts_truncates_to_limit():
    cases = [make_case(f"c{n}", next_hearing_date=NOW + timedelta(hours=n * 12)) for n in range(14)]
    alerts = upcoming_alerts(cases, NOW)
    assert len(alerts.upcoming) == 10
    assert alerts.upcoming[0].case.id == "c0"


def test_upcoming_alerts_empty():
    alerts = upcoming_alerts([], NOW)
    assert alerts.upcoming == []
    assert alerts.nearest is None


def test_days_are_counted_on_the_callers_calendar():
    early_morning = datetime(2024, 6, 11, 2, 0, tzinfo=IST)

    assert days_until("2024-06-11", early_morning) == 0
    tomorrow = make_case(next_hearing_date=datetime(2024, 6, 12, tzinfo=timezone.utc))
    assert days_until(tomorrow.next_hearing_date, early_morning) == 1
    assert urgency_class(tomorrow, early_morning) is Urgency.URGENT
    assert upcoming_alerts([tomorrow], early_morning).urgent == [tomorrow]


def test_naive_now_is_read_as_wall_clock():
    assert days_until("2024-06-11", datetime(2024, 6, 11, 1, 0)) == 0
    assert days_until("2024-06-11", datetime(2024, 6, 10, 23, 59)) == 1


def test_pending_hearing_turns_past_on_the_callers_next_day():
    case = make_case(next_hearing_date=datetime(2024, 6, 11, tzinfo=timezone.utc))

    after_midnight = datetime(2024, 6, 12, 1, 0, tzinfo=IST)
    assert reconstruct_hearings(case, after_midnight)[0].is_past is True
    assert reconstruct_hearings(case, datetime(2024, 6, 11, 23, 0, tzinfo=IST))[0].is_past is False
