# tests/test_api_incidents.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

API = "/api/v1"


def _year() -> int:
    return datetime.now(timezone.utc).year


def _body(ref, **overrides):
    body = {
        "reporterId": ref.alice.id,
        "departmentId": ref.trading.id,
        "occurredAt": "2025-01-10T00:00:00Z",
        "category": "near_miss",
        "description": "Near miss on trading floor",
    }
    body.update(overrides)
    return body


def _create(client, ref, headers=None, **overrides):
    r = client.post(f"{API}/incidents", json=_body(ref, **overrides), headers=headers or {})
    assert r.status_code == 201, r.text
    return r.json()


# ---------------------------
# Reference scenario
# ---------------------------
def test_report_review_and_filter_scenario(client, ref, as_alice, as_bob):
    created = _create(client, ref, as_alice)
    assert created["incidentNumber"] == f"INC-{_year()}-0001"
    assert created["currentStatus"] == "open"
    assert set(created) == {"id", "incidentNumber", "currentStatus", "createdAt"}

    detail = client.get(f"{API}/incidents/{created['id']}").json()
    assert [(h["fromStatus"], h["toStatus"]) for h in detail["statusHistory"]] == [(None, "open")]
    assert detail["occurredAt"] == "2025-01-10T00:00:00.000Z"

    r = client.put(
        f"{API}/incidents/{created['id']}/status",
        json={"status": "in_review", "reason": "Investigating"},
        headers=as_bob,
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "fromStatus": "open", "toStatus": "in_review"}

    detail = client.get(f"{API}/incidents/{created['id']}").json()
    assert detail["currentStatus"] == "in_review"
    history = detail["statusHistory"]
    assert len(history) == 2
    assert (history[1]["fromStatus"], history[1]["toStatus"], history[1]["reason"]) == (
        "open",
        "in_review",
        "Investigating",
    )
    assert history[1]["changer"]["displayName"] == "Bob Head"

    r = client.put(
        f"{API}/incidents/{created['id']}/status",
        json={"status": "in_review"},
        headers=as_bob,
    )
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["type"] == "illegal_transition"
    assert err["details"]["allowed"] == ["open", "closed"]

    in_review = client.get(f"{API}/incidents", params={"status": "in_review"}).json()
    closed = client.get(f"{API}/incidents", params={"status": "closed"}).json()
    assert [i["id"] for i in in_review["data"]] == [created["id"]]
    assert closed["data"] == []
    assert closed["pagination"] == {"page": 1, "pageSize": 20, "totalCount": 0, "totalPages": 0}


# ---------------------------
# Create
# ---------------------------
def test_create_falls_back_to_reporter_as_actor(client, ref):
    created = _create(client, ref)
    detail = client.get(f"{API}/incidents/{created['id']}").json()
    assert detail["statusHistory"][0]["changedBy"] == ref.alice.id


def test_create_header_identity_wins_over_reporter(client, ref, as_bob):
    created = _create(client, ref, as_bob)
    detail = client.get(f"{API}/incidents/{created['id']}").json()
    assert detail["reporterId"] == ref.alice.id
    assert detail["statusHistory"][0]["changedBy"] == ref.bob.id


def test_create_with_unknown_actor_is_401(client, ref):
    r = client.post(
        f"{API}/incidents",
        json=_body(ref),
        headers={"X-User-Id": "00000000-0000-4000-8000-000000000099"},
    )
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "identity_error"


def test_inactive_user_cannot_act(client, ref):
    r = client.post(f"{API}/incidents", json=_body(ref), headers={"X-User-Id": ref.gone.id})
    assert r.status_code == 401


def test_create_without_header_or_reporter_is_401(client, ref):
    body = _body(ref)
    del body["reporterId"]
    r = client.post(f"{API}/incidents", json=body)
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "identity_error"
    assert client.get(f"{API}/incidents").json()["pagination"]["totalCount"] == 0


def test_create_with_header_still_needs_reporter(client, ref, as_alice):
    body = _body(ref)
    del body["reporterId"]
    r = client.post(f"{API}/incidents", json=body, headers=as_alice)
    assert r.status_code == 400
    assert r.json()["error"]["details"][0]["loc"] == ["body", "reporterId"]


@pytest.mark.parametrize(
    "overrides, loc",
    [
        ({"description": "tiny"}, "description"),
        ({"description": "x" * 2001}, "description"),
        ({"category": "gossip"}, "category"),
        ({"severity": "urgent"}, "severity"),
        ({"departmentId": "not-a-uuid"}, "departmentId"),
        ({"associatedTeamIds": ["nope"]}, "associatedTeamIds"),
    ],
)
def test_create_validation_errors(client, ref, as_alice, overrides, loc):
    r = client.post(f"{API}/incidents", json=_body(ref, **overrides), headers=as_alice)
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["type"] == "validation_error"
    assert any(loc in d["loc"] for d in body["error"]["details"])
    assert r.headers["X-Request-ID"] == body["error"]["trace_id"]


def test_create_future_date_is_rejected(client, ref, as_alice):
    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    r = client.post(f"{API}/incidents", json=_body(ref, occurredAt=tomorrow), headers=as_alice)
    assert r.status_code == 400
    details = r.json()["error"]["details"]
    assert details[0]["loc"] == ["body", "occurredAt"]


def test_create_unknown_department_is_rejected(client, ref, as_alice):
    r = client.post(
        f"{API}/incidents",
        json=_body(ref, departmentId="00000000-0000-4000-8000-000000000001"),
        headers=as_alice,
    )
    assert r.status_code == 400
    assert r.json()["error"]["details"][0]["loc"] == ["body", "departmentId"]


def test_numbers_are_sequential_over_http(client, ref, as_alice):
    numbers = [_create(client, ref, as_alice)["incidentNumber"] for _ in range(3)]
    assert numbers == [f"INC-{_year()}-{n:04d}" for n in (1, 2, 3)]


# ---------------------------
# Read / update
# ---------------------------
def test_detail_shape(client, ref, as_alice):
    created = _create(
        client,
        ref,
        as_alice,
        teamId=ref.equities.id,
        incidentTypeId=ref.policy.id,
        associatedTeamIds=[ref.settlements.id],
        associatedProcessIds=[ref.capture.id],
        associatedPersons=[{"personId": ref.carol.id, "role": "witness"}],
    )
    detail = client.get(f"{API}/incidents/{created['id']}").json()

    assert detail["reporter"] == {"id": ref.alice.id, "displayName": "Alice Reporter", "email": "alice@example.com"}
    assert detail["department"] == {"id": ref.trading.id, "name": "Trading"}
    assert detail["team"]["name"] == "Equities Desk"
    assert detail["incidentType"]["name"] == "Policy Breach"
    assert detail["allowedTransitions"] == ["in_review", "closed"]
    assert detail["associatedTeams"][0]["team"]["name"] == "Settlements"
    assert detail["associatedProcesses"][0]["process"]["name"] == "Trade Capture"
    assert detail["associatedPersons"][0]["role"] == "witness"
    assert detail["associatedPersons"][0]["person"]["displayName"] == "Carol Risk"
    assert detail["comments"] == []
    assert detail["escalationRequested"] is False


def test_reading_twice_returns_identical_data(client, ref, as_alice):
    created = _create(client, ref, as_alice)
    first = client.get(f"{API}/incidents/{created['id']}").json()
    second = client.get(f"{API}/incidents/{created['id']}").json()
    assert first == second


def test_missing_incident_is_404(client, ref):
    r = client.get(f"{API}/incidents/00000000-0000-4000-8000-000000000000")
    assert r.status_code == 404
    err = r.json()["error"]
    assert err["type"] == "not_found"
    assert err["status"] == 404


def test_update_incident(client, ref, as_alice, as_bob):
    created = _create(client, ref, as_alice)
    r = client.put(
        f"{API}/incidents/{created['id']}",
        json={"severity": "high", "riskOwnerId": ref.carol.id, "escalationRequested": True},
        headers=as_bob,
    )
    assert r.status_code == 200, r.text
    detail = r.json()
    assert detail["severity"] == "high"
    assert detail["riskOwner"]["displayName"] == "Carol Risk"
    assert detail["escalationRequested"] is True
    assert detail["currentStatus"] == "open"
    assert detail["incidentNumber"] == created["incidentNumber"]


def test_update_ignores_status_field(client, ref, as_alice, as_bob):
    created = _create(client, ref, as_alice)
    r = client.put(f"{API}/incidents/{created['id']}", json={"currentStatus": "closed"}, headers=as_bob)
    assert r.status_code == 200
    assert r.json()["currentStatus"] == "open"


def test_update_requires_identity(client, ref, as_alice):
    created = _create(client, ref, as_alice)
    r = client.put(f"{API}/incidents/{created['id']}", json={"severity": "low"})
    assert r.status_code == 401


# ---------------------------
# Status endpoint errors
# ---------------------------
def test_status_change_requires_identity(client, ref, as_alice):
    created = _create(client, ref, as_alice)
    r = client.put(f"{API}/incidents/{created['id']}/status", json={"status": "closed"})
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "identity_error"


def test_status_change_unknown_incident(client, ref, as_bob):
    r = client.put(
        f"{API}/incidents/00000000-0000-4000-8000-000000000000/status",
        json={"status": "closed"},
        headers=as_bob,
    )
    assert r.status_code == 404


def test_status_change_validation(client, ref, as_alice, as_bob):
    created = _create(client, ref, as_alice)
    url = f"{API}/incidents/{created['id']}/status"
    assert client.put(url, json={"status": "archived"}, headers=as_bob).status_code == 400
    assert client.put(url, json={"status": "closed", "reason": "x" * 501}, headers=as_bob).status_code == 400


def test_reopen_after_close(client, ref, as_alice, as_bob):
    created = _create(client, ref, as_alice)
    url = f"{API}/incidents/{created['id']}/status"
    assert client.put(url, json={"status": "closed"}, headers=as_bob).status_code == 200
    r = client.put(url, json={"status": "open", "reason": "New evidence"}, headers=as_bob)
    assert r.json() == {"success": True, "fromStatus": "closed", "toStatus": "open"}
    detail = client.get(f"{API}/incidents/{created['id']}").json()
    assert len(detail["statusHistory"]) == 3
    assert detail["allowedTransitions"] == ["in_review", "closed"]


# ---------------------------
# Listing
# ---------------------------
def test_list_pagination_and_query_validation(client, ref, as_alice):
    for _ in range(5):
        _create(client, ref, as_alice)

    r = client.get(f"{API}/incidents", params={"page": 2, "pageSize": 2})
    body = r.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {"page": 2, "pageSize": 2, "totalCount": 5, "totalPages": 3}
    assert body["data"][0]["reporter"]["displayName"] == "Alice Reporter"

    assert client.get(f"{API}/incidents", params={"pageSize": 1001}).status_code == 400
    assert client.get(f"{API}/incidents", params={"page": 0}).status_code == 400
    assert client.get(f"{API}/incidents", params={"sortBy": "description"}).status_code == 400


def test_list_search_and_sort(client, ref, as_alice):
    _create(client, ref, as_alice, description="Phone left unlocked", severity="low")
    _create(client, ref, as_alice, description="Unapproved PHONE recording", severity="critical")
    _create(client, ref, as_alice, description="Late booking of a trade", severity="high")

    r = client.get(f"{API}/incidents", params={"search": "phone", "sortBy": "severity", "sortOrder": "asc"})
    assert [i["severity"] for i in r.json()["data"]] == ["critical", "low"]


def test_list_date_filters(client, ref, as_alice):
    _create(client, ref, as_alice, occurredAt="2025-01-05T10:00:00Z")
    _create(client, ref, as_alice, occurredAt="2025-02-05T10:00:00Z")
    r = client.get(
        f"{API}/incidents",
        params={"fromDate": "2025-01-01T00:00:00Z", "toDate": "2025-01-31T23:59:59Z"},
    )
    assert [i["occurredAt"] for i in r.json()["data"]] == ["2025-01-05T10:00:00.000Z"]


@pytest.mark.parametrize(
    "params, loc",
    [
        ({"fromDate": "2025-01-10", "toDate": "2025-01-10"}, "fromDate"),
        ({"toDate": "2025-01-10"}, "toDate"),
        ({"fromDate": "2025-01-10T00:00:00"}, "fromDate"),
    ],
)
def test_list_date_filters_need_full_datetime_with_offset(client, ref, as_alice, params, loc):
    _create(client, ref, as_alice, occurredAt="2025-01-10T15:00:00Z")
    r = client.get(f"{API}/incidents", params=params)
    assert r.status_code == 400
    body = r.json()
    assert body["error"]["type"] == "validation_error"
    assert any(loc in d["loc"] for d in body["error"]["details"])

    same_day = client.get(
        f"{API}/incidents",
        params={"fromDate": "2025-01-10T00:00:00Z", "toDate": "2025-01-10T23:59:59.999Z"},
    ).json()
    assert same_day["pagination"]["totalCount"] == 1
