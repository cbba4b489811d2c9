"""HTTP-level tests: auth, CSRF, error mapping and the main workflows."""

import csv
import io
import uuid

import pytest
from httpx import AsyncClient

from shelter.db.enums import AuditEventType, Role
from shelter.services import audit_service


async def _intake(client: AsyncClient, **overrides) -> dict:
    payload = {"name": "Biscuit", "species": "dog", "intake_type": "stray", "intake_date": "2024-01-10"}
    payload.update(overrides)
    response = await client.post("/animals", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# Auth, CSRF and error mapping
# =============================================================================

@pytest.mark.asyncio
async def test_unauthenticated_request_is_rejected(client: AsyncClient):
    response = await client.get("/animals")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client_factory):
    async with client_factory() as client:
        response = await client.get("/animals", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_mutation_without_csrf_header_is_rejected(client_factory, staff_user, test_org):
    async with client_factory(staff_user, test_org, csrf=False) as client:
        response = await client.post(
            "/animals", json={"name": "Biscuit", "species": "dog"}
        )
    assert response.status_code == 403
    assert "CSRF" in response.json()["detail"]


@pytest.mark.asyncio
async def test_readonly_member_cannot_intake(client_factory, readonly_user, test_org):
    async with client_factory(readonly_user, test_org) as client:
        listing = await client.get("/animals")
        response = await client.post("/animals", json={"name": "Biscuit", "species": "dog"})

    assert listing.status_code == 200
    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"


@pytest.mark.asyncio
async def test_me_reports_role_from_membership(staff_client: AsyncClient, test_org):
    response = await staff_client.get("/me")

    assert response.status_code == 200
    data = response.json()
    assert data["role"] == Role.STAFF.value
    assert data["org_id"] == str(test_org.id)


@pytest.mark.asyncio
async def test_domain_errors_map_to_structured_bodies(staff_client: AsyncClient):
    animal = await _intake(staff_client)

    adopted = await staff_client.post(f"/animals/{animal['id']}/status", json={"status": "adopted"})
    assert adopted.status_code == 409
    assert adopted.json()["error"] == "invalid_transition"

    stale = await staff_client.patch(
        f"/animals/{animal['id']}", json={"color": "Brown", "expected_version": 7}
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == "concurrent_modification"

    missing = await staff_client.get(f"/animals/{uuid.uuid4()}")
    assert missing.status_code == 404
    assert missing.json() == {"error": "unknown_entity", "detail": "Animal not found"}

    bad_attributes = await staff_client.post(
        "/animals", json={"name": "Rex", "species": "dog", "attributes": {"age_months": "old"}}
    )
    assert bad_attributes.status_code == 422
    assert bad_attributes.json()["error"] == "invalid_attributes"


@pytest.mark.asyncio
async def test_request_id_is_echoed_and_audited(staff_client: AsyncClient, db, test_org):
    response = await staff_client.post(
        "/animals",
        json={"name": "Pepper", "species": "cat"},
        headers={"X-Request-ID": "req-intake-1"},
    )

    assert response.status_code == 201
    assert response.headers["X-Request-ID"] == "req-intake-1"
    (entry,) = audit_service.entity_history(db, test_org.id, "animal", uuid.UUID(response.json()["id"]))
    assert entry.request_id == "req-intake-1"


# =============================================================================
# Workflows
# =============================================================================

@pytest.mark.asyncio
async def test_animal_status_and_history(staff_client: AsyncClient):
    animal = await _intake(staff_client)

    held = await staff_client.post(
        f"/animals/{animal['id']}/status", json={"status": "hold", "reason": "Ringworm", "expected_version": 1}
    )
    assert held.status_code == 200
    assert held.json()["status"] == "hold"
    assert held.json()["version"] == 2

    history = await staff_client.get(f"/animals/{animal['id']}/history")
    assert [e["event_type"] for e in history.json()] == ["animal_intake", "animal_status_changed"]


@pytest.mark.asyncio
async def test_medical_completion_flow(client_factory, staff_client: AsyncClient, volunteer_user, test_org):
    animal = await _intake(staff_client)
    created = await staff_client.post(
        "/medical/tasks",
        json={"animal_id": animal["id"], "type": "vaccine", "due_date": "2024-01-10", "title": "Rabies"},
    )
    assert created.status_code == 201
    task_id = created.json()["id"]

    async with client_factory(volunteer_user, test_org) as volunteer:
        completed = await volunteer.post(
            f"/medical/tasks/{task_id}/complete",
            json={"completed_on": "2024-01-10", "product": "Imrab 3"},
        )
        batch = await volunteer.post(
            "/medical/tasks/batch-complete",
            json={"task_ids": [task_id, str(uuid.uuid4())]},
        )

    assert completed.status_code == 200
    body = completed.json()
    assert body["task"]["status"] == "completed"
    assert body["record"]["product"] == "Imrab 3"
    assert body["follow_up"]["due_date"] == "2025-01-10"

    assert batch.status_code == 200
    assert batch.json()["updated"] == 0
    assert [f["reason"] for f in batch.json()["failures"]] == ["already_terminal", "unknown_entity"]

    overdue = await staff_client.get(
        "/medical/tasks", params={"classification": "upcoming", "as_of": "2024-06-01"}
    )
    assert overdue.json()["total"] == 1


@pytest.mark.asyncio
async def test_adoption_flow(staff_client: AsyncClient):
    animal = await _intake(staff_client)
    person = await staff_client.post("/people", json={"name": "Jordan Rivera", "type": "adopter"})
    assert person.status_code == 201

    submitted = await staff_client.post(
        "/applications",
        json={"animal_id": animal["id"], "person_id": person.json()["id"], "kind": "adoption"},
    )
    assert submitted.status_code == 201
    app_id = submitted.json()["id"]

    early = await staff_client.post(f"/applications/{app_id}/finalize-adoption", json={"fee_cents": 15000})
    assert early.status_code == 409
    assert early.json()["error"] == "application_not_approved"

    assert (await staff_client.post(f"/applications/{app_id}/review", json={})).status_code == 200
    assert (await staff_client.post(f"/applications/{app_id}/approve", json={})).status_code == 200

    finalized = await staff_client.post(f"/applications/{app_id}/finalize-adoption", json={"fee_cents": 15000})
    assert finalized.status_code == 201
    assert finalized.json()["fee_cents"] == 15000

    adopted = await staff_client.get(f"/animals/{animal['id']}")
    assert adopted.json()["status"] == "adopted"
    assert adopted.json()["outcome"]["type"] == "adoption"

    adoptions = await staff_client.get("/placements/adoptions")
    assert [a["application_id"] for a in adoptions.json()] == [app_id]


@pytest.mark.asyncio
async def test_notes_are_sanitized(staff_client: AsyncClient):
    animal = await _intake(staff_client)

    created = await staff_client.post(
        f"/subjects/animal/{animal['id']}/notes",
        json={"body": "<p>Gentle<script>alert(1)</script></p>", "tags": ["Behavior"]},
    )
    assert created.status_code == 201
    assert created.json()["body"] == "<p>Gentle</p>"

    listed = await staff_client.get(f"/subjects/animal/{animal['id']}/notes")
    assert [n["tags"] for n in listed.json()] == [["behavior"]]


# =============================================================================
# Reports, audit and administration
# =============================================================================

@pytest.mark.asyncio
async def test_reports_and_export(client_factory, staff_client: AsyncClient, readonly_user, test_org, db):
    await _intake(staff_client, name="=cmd")

    dashboard = await staff_client.get("/reports/dashboard")
    assert dashboard.status_code == 200
    assert dashboard.json()["animals_in_care"] == 1

    exported = await staff_client.get("/reports/exports/animals")
    assert exported.status_code == 200
    assert exported.headers["content-type"].startswith("text/csv")
    assert "attachment" in exported.headers["content-disposition"]
    header, row = list(csv.reader(io.StringIO(exported.text)))
    assert row[header.index("name")] == "'=cmd"

    events, _ = audit_service.list_events(
        db, test_org.id, event_type=AuditEventType.DATA_EXPORTED.value
    )
    assert events[0].details == {"export": "animals_csv"}

    async with client_factory(readonly_user, test_org) as readonly:
        assert (await readonly.get("/reports/pipeline")).status_code == 200
        denied = await readonly.get("/reports/exports/animals")
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_audit_endpoints_require_admin(admin_client: AsyncClient, staff_client: AsyncClient):
    verified = await admin_client.get("/audit/verify")
    assert verified.status_code == 200
    assert verified.json()["valid"] is True

    listing = await admin_client.get("/audit")
    assert listing.status_code == 200
    assert listing.json()["items"][0]["sequence"] == listing.json()["total"]

    denied = await staff_client.get("/audit/verify")
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_last_admin_cannot_be_demoted(admin_client: AsyncClient, admin_user):
    response = await admin_client.patch(f"/org/members/{admin_user.id}", json={"role": "staff"})

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


@pytest.mark.asyncio
async def test_admin_manages_members(admin_client: AsyncClient, staff_client: AsyncClient, user_factory):
    newcomer = user_factory("newcomer")

    added = await admin_client.post("/org/members", json={"user_id": str(newcomer.id), "role": "volunteer"})
    assert added.status_code == 201
    assert added.json()["role"] == "volunteer"

    forbidden = await staff_client.patch(f"/org/members/{newcomer.id}", json={"role": "admin"})
    assert forbidden.status_code == 403

    members = await staff_client.get("/org/members")
    assert str(newcomer.id) in {m["user_id"] for m in members.json()}


@pytest.mark.asyncio
async def test_lost_audit_append_race_maps_to_conflict(staff_client: AsyncClient, monkeypatch):
    animal = await _intake(staff_client)
    monkeypatch.setattr(
        audit_service, "get_chain_head", lambda db, org_id: (0, audit_service.GENESIS_HASH)
    )

    response = await staff_client.post(f"/animals/{animal['id']}/status", json={"status": "hold"})

    assert response.status_code == 409
    assert response.json()["error"] == "concurrent_modification"
