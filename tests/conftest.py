from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from casetracker.auth import AuthService, PasswordHasher
from casetracker.cases import CaseStore
from casetracker.storage import MemoryKeyValueStore

TODAY = datetime(2024, 6, 10, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = TODAY) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def auth(kv, clock) -> AuthService:
    return AuthService(kv, PasswordHasher(rounds=4), clock=clock)


@pytest.fixture
def case_store(kv, auth, clock, ids) -> CaseStore:
    return CaseStore(kv, auth, clock=clock, id_factory=ids)


@pytest.fixture
def sample_fields() -> dict:
    return {
        "case_number": "CRL.A. 112/2024",
        "case_title": "State v. Mehta",
        "client_name": "Raghav Mehta",
        "court_name": "Sessions Court, Pune",
        "judge_name": "Justice Kulkarni",
        "case_type": "Criminal",
        "ipc_section": "420",
        "bns_section": "318",
        "description": "Cheating complaint",
        "status": "active",
        "next_hearing_date": "2024-06-11",
        "next_hearing_time": "10:30",
    }
