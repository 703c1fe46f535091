from .deriver import days_until, reconstruct_hearings, upcoming_alerts, urgency_class, urgency_for_days
from .timeline import (
    CaseStats,
    HearingSummary,
    case_stats,
    filter_cases,
    hearing_summary,
    milestones,
    recent_activity,
    relative_label,
    sort_cases_by_hearing_date,
    timeline,
)

__all__ = [
    "CaseStats",
    "HearingSummary",
    "case_stats",
    "days_until",
    "filter_cases",
    "hearing_summary",
    "milestones",
    "reconstruct_hearings",
    "recent_activity",
    "relative_label",
    "sort_cases_by_hearing_date",
    "timeline",
    "upcoming_alerts",
    "urgency_class",
    "urgency_for_days",
]
