from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Mapping

from casetracker.cases.store import CaseStore
from casetracker.dates import local_now, to_iso
from casetracker.types import Case, User, case_from_dict, case_to_dict, user_to_dict

logger = logging.getLogger(__name__)


def export_data(store: CaseStore, user: User, now: datetime | None = None) -> dict[str, Any]:
    """Backup document for one user: `{user, cases, exportDate}`."""

    return {
        "user": user_to_dict(user, include_password=False),
        "cases": [case_to_dict(case) for case in store.list_cases(user.id)],
        "exportDate": to_iso(now or local_now()),
    }


def dump_export(store: CaseStore, user: User, now: datetime | None = None) -> str:
    return json.dumps(export_data(store, user, now), indent=2)


def backup_filename(now: datetime | None = None) -> str:
    stamp = (now or local_now()).date().isoformat()
    return f"legal_manager_backup_{stamp}.json"


def import_data(store: CaseStore, user: User, payload: str | Mapping[str, Any]) -> bool:
    """
    Restore cases from a backup document, replacing the user's current cases.

    Only cases owned by `user` (or carrying no owner at all) are imported; anything else in the
    document is ignored.
    """

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            logger.warning("Import payload is not valid JSON")
            return False
    if not isinstance(payload, Mapping):
        return False

    incoming = payload.get("cases")
    if not isinstance(incoming, list):
        logger.warning("Import payload has no cases list")
        return False

    cases: list[Case] = []
    skipped = 0
    for item in incoming:
        if not isinstance(item, Mapping):
            skipped += 1
            continue
        owner = item.get("userId")
        if owner and owner != user.id:
            skipped += 1
            continue
        try:
            cases.append(case_from_dict({**item, "userId": user.id}))
        except (KeyError, TypeError, ValueError):
            skipped += 1
            logger.warning("Skipping malformed case in import", extra={"case_id": item.get("id")})

    if not store.replace_cases(user.id, cases):
        return False
    logger.info("Imported cases", extra={"user_id": user.id, "imported": len(cases), "skipped": skipped})
    return True
