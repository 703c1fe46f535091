#!/usr/bin/env python3
"""Seed the demo account and a handful of sample cases for quick smoke-testing."""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from casetracker.auth import DEMO_PASSWORD, DEMO_USERNAME, AuthService, PasswordHasher
from casetracker.cases import CaseStore
from casetracker.config import Settings
from casetracker.dates import local_now
from casetracker.storage import SqlKeyValueStore, create_session_factory, init_db

SAMPLE_CASES = (
    {
        "case_number": "CRL.A. 112/2024",
        "case_title": "State v. Raghav Mehta",
        "client_name": "Raghav Mehta",
        "court_name": "Sessions Court, Pune",
        "case_type": "Criminal",
        "ipc_section": "420",
        "bns_section": "318",
    },
    {
        "case_number": "O.S. 45/2023",
        "case_title": "Iyer v. Coastal Builders",
        "client_name": "Lakshmi Iyer",
        "court_name": "City Civil Court, Chennai",
        "case_type": "Civil",
    },
    {
        "case_number": "W.P. 9001/2024",
        "case_title": "Residents Welfare Assn. v. Municipal Corporation",
        "client_name": "Residents Welfare Assn.",
        "court_name": "High Court of Bombay",
        "case_type": "Writ",
    },
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db-url",
        dest="db_url",
        default=None,
        help="Database URL (defaults to CASETRACKER_DATABASE_URL/.env)",
    )
    parser.add_argument(
        "--hearing-offsets",
        dest="hearing_offsets",
        default="1,3,12",
        help="Comma separated day offsets from today for each sample case's next hearing",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = Settings()
    session_factory, engine = create_session_factory(args.db_url or settings.database_url)
    init_db(engine)
    store = SqlKeyValueStore(session_factory)

    auth = AuthService(store, PasswordHasher(rounds=settings.password_hash_rounds))
    auth.ensure_default_user()
    if not auth.login(DEMO_USERNAME, DEMO_PASSWORD):
        print("ERROR: demo account exists with a different password", file=sys.stderr)
        return 2

    try:
        offsets = [int(value) for value in args.hearing_offsets.split(",") if value.strip()]
    except ValueError:
        print("ERROR: --hearing-offsets must be integers", file=sys.stderr)
        return 2

    cases = CaseStore(store, auth)
    today = local_now().date()
    for index, fields in enumerate(SAMPLE_CASES):
        payload = dict(fields)
        if index < len(offsets):
            payload["next_hearing_date"] = today + timedelta(days=offsets[index])
            payload["next_hearing_time"] = "10:30"
        case = cases.add_case(None, payload)
        if case is None:
            print(f"ERROR: failed to save {fields['case_number']}", file=sys.stderr)
            return 1
        print(f"Added {case.case_number} ({case.id})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
