from __future__ import annotations

import json

from casetracker.cases import backup_filename, dump_export, export_data, import_data


def _register(auth):
    return auth.register("advocate", "adv@example.com", "secret1").user


def test_export_contains_only_the_users_cases(auth, case_store, sample_fields, clock):
    user = _register(auth)
    mine = case_store.add_case(None, sample_fields)
    case_store.add_case("someone-else", {**sample_fields, "case_number": "OTHER-1"})

    document = export_data(case_store, user, clock.now)

    assert set(document) == {"user", "cases", "exportDate"}
    assert "password" not in document["user"]
    assert document["user"]["username"] == "advocate"
    assert [item["id"] for item in document["cases"]] == [mine.id]
    assert document["cases"][0]["caseNumber"] == sample_fields["case_number"]
    assert document["exportDate"] == clock.now.isoformat()


def test_dump_export_is_indented_json(auth, case_store, sample_fields, clock):
    user = _register(auth)
    case_store.add_case(None, sample_fields)

    text = dump_export(case_store, user, clock.now)

    assert text.startswith('{\n  "user"')
    assert len(json.loads(text)["cases"]) == 1
    assert backup_filename(clock.now) == "legal_manager_backup_2024-06-10.json"


def test_import_replaces_cases_and_filters_by_owner(auth, case_store, sample_fields, clock):
    user = _register(auth)
    case_store.add_case(None, {**sample_fields, "case_number": "STALE-1"})
    foreign = case_store.add_case("someone-else", {**sample_fields, "case_number": "OTHER-1"})
    payload = {
        "cases": [
            {"id": "c-own", "userId": user.id, "caseNumber": "OWN-1", "caseTitle": "Own"},
            {"id": "c-orphan", "caseNumber": "ORPHAN-1", "caseTitle": "Ownerless", "nextHearingDate": "2024-06-12"},
            {"id": "c-foreign", "userId": "intruder", "caseNumber": "BAD-1", "caseTitle": "Foreign"},
            {"caseNumber": "NO-ID"},
            "garbage",
        ]
    }

    assert import_data(case_store, user, json.dumps(payload)) is True

    imported = {case.id: case for case in case_store.list_cases(user.id)}
    assert set(imported) == {"c-own", "c-orphan"}
    assert imported["c-orphan"].user_id == user.id
    assert imported["c-orphan"].next_hearing_date.date().isoformat() == "2024-06-12"
    assert [case.id for case in case_store.list_cases("someone-else")] == [foreign.id]


def test_import_rejects_malformed_documents(auth, case_store, sample_fields):
    user = _register(auth)
    existing = case_store.add_case(None, sample_fields)

    assert import_data(case_store, user, "{not json") is False
    assert import_data(case_store, user, {"cases": "nope"}) is False
    assert import_data(case_store, user, ["cases"]) is False
    assert [case.id for case in case_store.list_cases(user.id)] == [existing.id]


def test_export_then_import_restores_state(auth, case_store, sample_fields, clock):
    user = _register(auth)
    original = case_store.add_case(None, sample_fields)
    document = dump_export(case_store, user, clock.now)
    case_store.delete_case(None, original.id)
    assert case_store.list_cases(None) == []

    assert import_data(case_store, user, document) is True

    (restored,) = case_store.list_cases(None)
    assert restored == original
