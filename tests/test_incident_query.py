# tests/test_incident_query.py
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from conduct_log.core.errors import NotFoundError, ValidationFailed
from conduct_log.crud import incident as incident_crud
from conduct_log.services import workflow
from conduct_log.services.incident_query import (
    IncidentFilters,
    get_incident_detail,
    list_incidents,
)

from tests.conftest import NOW


def _seed(db, ref, make_payload, n, **overrides):
    out = []
    for i in range(n):
        payload = make_payload(
            occurred_at=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(days=i),
            description=f"Incident number {i} on the desk",
            **overrides,
        )
        out.append(
            incident_crud.create_incident(db, payload, actor_id=ref.alice.id, now=NOW + timedelta(minutes=i))
        )
    return out


# ---------------------------
# Pagination
# ---------------------------
def test_pages_cover_every_incident_exactly_once(db, ref, make_payload):
    created = _seed(db, ref, make_payload, 7)

    for sort_by, sort_order in [("reportedAt", "desc"), ("occurredAt", "asc"), ("incidentNumber", "desc")]:
        seen = []
        for page in (1, 2, 3):
            items, pagination = list_incidents(
                db, page=page, page_size=3, sort_by=sort_by, sort_order=sort_order
            )
            assert pagination.total_count == 7
            assert pagination.total_pages == 3
            seen.extend(i.id for i in items)

        unpaged, _ = list_incidents(db, page_size=100, sort_by=sort_by, sort_order=sort_order)
        assert seen == [i.id for i in unpaged]
        assert set(seen) == {c.id for c in created}

    walked = []
    for page in (1, 2, 3):
        items, _ = list_incidents(db, page=page, page_size=3, sort_by="occurredAt", sort_order="asc")
        walked.extend(i.id for i in items)
    assert walked == [c.id for c in created]


def test_page_past_the_end_is_empty_with_metadata(db, ref, make_payload):
    _seed(db, ref, make_payload, 4)
    items, pagination = list_incidents(db, page=5, page_size=2)
    assert items == []
    assert (pagination.page, pagination.page_size, pagination.total_count, pagination.total_pages) == (5, 2, 4, 2)


def test_empty_store(db, ref):
    items, pagination = list_incidents(db)
    assert items == []
    assert pagination.total_count == 0
    assert pagination.total_pages == 0


def test_default_order_is_newest_report_first(db, ref, make_payload):
    created = _seed(db, ref, make_payload, 3)
    items, _ = list_incidents(db)
    assert [i.id for i in items] == [c.id for c in reversed(created)]


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"page": 0}, "page"),
        ({"page_size": 0}, "pageSize"),
        ({"page_size": 1001}, "pageSize"),
        ({"sort_by": "description"}, "sortBy"),
        ({"sort_order": "sideways"}, "sortOrder"),
    ],
)
def test_invalid_paging_arguments(db, ref, kwargs, field):
    with pytest.raises(ValidationFailed) as exc:
        list_incidents(db, **kwargs)
    assert exc.value.field == field


# ---------------------------
# Filters
# ---------------------------
def test_two_dimension_filter_is_the_intersection(db, ref, make_payload):
    combos = list(itertools.product(["open", "in_review", "closed"], ["near_miss", "process_gap"], ["low", "high"]))
    expected = {}
    for i, (status, category, severity) in enumerate(combos):
        obj = incident_crud.create_incident(
            db,
            make_payload(category=category, severity=severity),
            actor_id=ref.alice.id,
            now=NOW + timedelta(minutes=i),
        )
        if status != "open":
            workflow.change_status(db, obj.id, status, actor_id=ref.bob.id)
        expected[obj.id] = (status, category, severity)

    for status, category in itertools.product(["open", "in_review", "closed"], ["near_miss", "process_gap"]):
        items, pagination = list_incidents(
            db, IncidentFilters(status=status, category=category), page_size=100
        )
        want = {k for k, v in expected.items() if v[0] == status and v[1] == category}
        assert {i.id for i in items} == want
        assert pagination.total_count == len(want)

    items, _ = list_incidents(db, IncidentFilters(category="process_gap", severity="high"), page_size=100)
    assert {i.id for i in items} == {k for k, v in expected.items() if v[1:] == ("process_gap", "high")}


def test_reference_filters(db, ref, make_payload):
    mine = incident_crud.create_incident(
        db, make_payload(team_id=ref.equities.id), actor_id=ref.alice.id, now=NOW
    )
    other = incident_crud.create_incident(
        db,
        make_payload(reporter_id=ref.carol.id, department_id=ref.ops.id, team_id=ref.settlements.id),
        actor_id=ref.carol.id,
        now=NOW,
    )

    by_dept, _ = list_incidents(db, IncidentFilters(department_id=ref.ops.id))
    by_team, _ = list_incidents(db, IncidentFilters(team_id=ref.equities.id))
    by_reporter, _ = list_incidents(db, IncidentFilters(reporter_id=ref.carol.id))
    assert [i.id for i in by_dept] == [other.id]
    assert [i.id for i in by_team] == [mine.id]
    assert [i.id for i in by_reporter] == [other.id]


def test_date_range_is_inclusive(db, ref, make_payload):
    created = _seed(db, ref, make_payload, 5)  # occurred 2025-01-01 .. 2025-01-05
    items, _ = list_incidents(
        db,
        IncidentFilters(
            from_date=datetime(2025, 1, 2, tzinfo=timezone.utc),
            to_date=datetime(2025, 1, 4, tzinfo=timezone.utc),
        ),
        sort_by="occurredAt",
        sort_order="asc",
    )
    assert [i.id for i in items] == [c.id for c in created[1:4]]


def test_inverted_date_range_is_rejected(db, ref):
    with pytest.raises(ValidationFailed):
        list_incidents(
            db,
            IncidentFilters(
                from_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
                to_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            ),
        )


def test_search_matches_description_or_number_case_insensitively(db, ref, make_payload):
    a = incident_crud.create_incident(
        db, make_payload(description="Unauthorised access to Client files"), actor_id=ref.alice.id, now=NOW
    )
    b = incident_crud.create_incident(
        db, make_payload(description="Late trade booking"), actor_id=ref.alice.id, now=NOW + timedelta(minutes=1)
    )

    items, _ = list_incidents(db, IncidentFilters(search="CLIENT"))
    assert [i.id for i in items] == [a.id]

    items, _ = list_incidents(db, IncidentFilters(search="inc-2025-0002"))
    assert [i.id for i in items] == [b.id]

    items, _ = list_incidents(db, IncidentFilters(search="   "))
    assert len(items) == 2


def test_search_treats_wildcards_literally(db, ref, make_payload):
    pct = incident_crud.create_incident(
        db, make_payload(description="Limit breached by 15% today"), actor_id=ref.alice.id, now=NOW
    )
    incident_crud.create_incident(
        db, make_payload(description="Limit breached by 15 units"), actor_id=ref.alice.id, now=NOW
    )
    items, _ = list_incidents(db, IncidentFilters(search="15%"))
    assert [i.id for i in items] == [pct.id]


def test_search_folds_case_beyond_ascii(db, ref, make_payload):
    hit = incident_crud.create_incident(
        db, make_payload(description="Écart de procédure au guichet"), actor_id=ref.alice.id, now=NOW
    )
    incident_crud.create_incident(
        db, make_payload(description="Procedure followed correctly"), actor_id=ref.alice.id, now=NOW
    )
    for term in ("écart", "ÉCART", "PROCÉDURE"):
        items, _ = list_incidents(db, IncidentFilters(search=term))
        assert [i.id for i in items] == [hit.id], term


def test_unknown_enum_filter_is_rejected(db, ref):
    with pytest.raises(ValidationFailed) as exc:
        list_incidents(db, IncidentFilters(status="pending"))
    assert exc.value.field == "status"


# ---------------------------
# Sorting
# ---------------------------
def test_severity_sorts_by_stored_string(db, ref, make_payload):
    for i, sev in enumerate(["medium", "critical", "low", "high"]):
        incident_crud.create_incident(
            db, make_payload(severity=sev), actor_id=ref.alice.id, now=NOW + timedelta(minutes=i)
        )
    items, _ = list_incidents(db, sort_by="severity", sort_order="asc")
    assert [i.severity for i in items] == ["critical", "high", "low", "medium"]


def test_ties_are_broken_deterministically(db, ref, make_payload):
    for _ in range(6):
        incident_crud.create_incident(db, make_payload(), actor_id=ref.alice.id, now=NOW)

    first, _ = list_incidents(db, sort_by="reportedAt", page_size=100)
    again, _ = list_incidents(db, sort_by="reportedAt", page_size=100)
    assert [i.id for i in first] == [i.id for i in again] == sorted(i.id for i in first)


def test_summaries_carry_display_objects(db, ref, make_payload):
    incident_crud.create_incident(
        db,
        make_payload(team_id=ref.equities.id, incident_type_id=ref.policy.id),
        actor_id=ref.alice.id,
        now=NOW,
    )
    (item,), _ = list_incidents(db)
    assert item.reporter.display_name == "Alice Reporter"
    assert item.department.name == "Trading"
    assert item.team.name == "Equities Desk"
    assert item.incident_type.name == "Policy Breach"


# ---------------------------
# Detail
# ---------------------------
def test_detail_loads_relations(db, ref, make_payload):
    obj = incident_crud.create_incident(
        db,
        make_payload(associated_team_ids=[ref.settlements.id], associated_person_ids=[ref.bob.id]),
        actor_id=ref.alice.id,
        now=NOW,
    )
    workflow.change_status(db, obj.id, "in_review", actor_id=ref.bob.id)

    detail = get_incident_detail(db, obj.id)
    assert [h.to_status for h in detail.status_history] == ["open", "in_review"]
    assert detail.team_links[0].team.name == "Settlements"
    assert detail.person_links[0].person.display_name == "Bob Head"


def test_detail_missing(db, ref):
    with pytest.raises(NotFoundError):
        get_incident_detail(db, "00000000-0000-4000-8000-000000000000")
