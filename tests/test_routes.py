from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from leadms.auth.session import SessionContext
from leadms.dependencies import Workspace, get_workspace
from leadms.main import app

from conftest import FakeRecordStore, StubAuthProvider, make_lead_row


@pytest.fixture
def workspace():
    workspace = Workspace(store=FakeRecordStore(), sessions=SessionContext(provider=StubAuthProvider()))
    workspace.sessions.start()
    app.dependency_overrides[get_workspace] = lambda: workspace
    yield workspace
    app.dependency_overrides.clear()
    workspace.close()


@pytest.fixture
def client(workspace):
    return TestClient(app)


@pytest.fixture
def signed_in(client):
    response = client.post("/auth/sign-in", json={"email": "owner@example.com", "password": "secret"})
    assert response.status_code == 200
    client.headers.update({"Authorization": f"Bearer {response.json()['access_token']}"})
    return client


def _seed(workspace, **fields):
    row = make_lead_row(**fields)
    workspace.store.seed("leads", row)
    workspace.leads.load()
    return row


def test_health_reports_session_state(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["signed_in"] is False


def test_lead_routes_require_sign_in(client):
    assert client.get("/leads").status_code == 401
    assert client.post("/leads", json={}).status_code == 401


def test_sign_in_returns_session(signed_in):
    body = signed_in.get("/auth/session").json()
    assert body["user_id"] == "user-1"
    assert body["access_token"] == "token-abc"
    assert body["token_type"] == "bearer"


def test_sign_out_clears_session(signed_in):
    assert signed_in.post("/auth/sign-out").status_code == 204
    assert signed_in.get("/auth/session").status_code == 401


def test_create_lead_and_list(signed_in, workspace):
    response = signed_in.post(
        "/leads",
        json={
            "business_name": "Blue Tiles",
            "contact_person": "Sameer",
            "phone": "9000000001",
            "city": "Pune",
            "interested_services": ["Website Development"],
        },
    )
    assert response.status_code == 201
    created = response.json()
    assert created["stage"] == "Contacted"
    assert created["created_by"] == "user-1"

    listed = signed_in.get("/leads").json()
    assert [lead["id"] for lead in listed] == [created["id"]]


def test_create_lead_missing_required_field(signed_in, workspace):
    response = signed_in.post("/leads", json={"business_name": "X", "contact_person": "", "phone": "1"})
    assert response.status_code == 422
    assert ("insert", "leads") not in workspace.store.calls


def test_store_failure_is_a_blocking_notice(signed_in, workspace):
    row = _seed(workspace, lead_status="Cold")
    workspace.store.fail("update")
    response = signed_in.put(f"/leads/{row['id']}/status", json={"lead_status": "Hot"})
    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to update lead"
    assert signed_in.get(f"/leads/{row['id']}").json()["lead_status"] == "Cold"


def test_list_filters_and_conversation_search(signed_in, workspace):
    pune = _seed(workspace, business_name="Pune Prints", city="Pune", created_at=datetime(2024, 1, 2))
    _seed(workspace, business_name="Mumbai Media", city="Mumbai", created_at=datetime(2024, 1, 1))
    workspace.store.seed(
        "followup_conversations",
        {
            "id": "c1",
            "lead_id": pune["id"],
            "created_by": "user-1",
            "conversation_text": "Asked for a brochure redesign",
            "conversation_date": datetime(2024, 1, 3),
        },
    )

    by_city = signed_in.get("/leads", params={"city": "mum"}).json()
    assert [lead["business_name"] for lead in by_city] == ["Mumbai Media"]

    by_conversation = signed_in.get("/leads", params={"q": "brochure"}).json()
    assert [lead["business_name"] for lead in by_conversation] == ["Pune Prints"]


def test_stage_move_and_board(signed_in, workspace):
    row = _seed(workspace, stage="Closed/Won")
    response = signed_in.put(f"/leads/{row['id']}/stage", json={"stage": "Contacted"})
    assert response.status_code == 200
    assert response.json()["stage"] == "Contacted"

    columns = signed_in.get("/board").json()
    assert [column["stage"] for column in columns] == [
        "Contacted",
        "Requirements Received",
        "Follow-ups",
        "Closed/Won",
    ]
    assert columns[0]["count"] == 1


def test_invalid_stage_is_rejected(signed_in, workspace):
    row = _seed(workspace)
    response = signed_in.put(f"/leads/{row['id']}/stage", json={"stage": "Lost"})
    assert response.status_code == 422


def test_patch_and_delete(signed_in, workspace):
    row = _seed(workspace)
    assert signed_in.patch(f"/leads/{row['id']}", json={}).status_code == 400
    patched = signed_in.patch(f"/leads/{row['id']}", json={"notes_first_call": "Call after Diwali"})
    assert patched.json()["notes_first_call"] == "Call after Diwali"

    assert signed_in.delete(f"/leads/{row['id']}").status_code == 204
    assert signed_in.get(f"/leads/{row['id']}").status_code == 404
    assert signed_in.delete(f"/leads/{row['id']}").status_code == 404


def test_followups_bucket(signed_in, workspace):
    yesterday = datetime.now() - timedelta(days=1)
    _seed(workspace, business_name="Late", next_followup_date=yesterday)
    _seed(workspace, business_name="Unscheduled")

    overdue = signed_in.get("/followups", params={"bucket": "overdue"}).json()
    assert [entry["lead"]["business_name"] for entry in overdue] == ["Late"]
    assert overdue[0]["overdue"] is True

    buckets = signed_in.get("/followups/buckets").json()
    assert [bucket["id"] for bucket in buckets] == ["all", "overdue", "today", "tomorrow", "thisWeek", "nextWeek"]


def test_conversations_routes(signed_in, workspace):
    row = _seed(workspace)
    created = signed_in.post(
        f"/leads/{row['id']}/conversations",
        json={"conversation_text": "Shared pricing", "conversation_date": "2024-03-02T11:00:00+00:00"},
    )
    assert created.status_code == 201

    latest = signed_in.get(f"/leads/{row['id']}/conversations/latest").json()
    assert latest["conversation_text"] == "Shared pricing"
    assert signed_in.get("/leads/unknown/conversations").status_code == 404


def test_cities(signed_in, workspace):
    _seed(workspace, city="Pune", created_at=datetime(2024, 1, 2))
    _seed(workspace, city="Nagpur", created_at=datetime(2024, 1, 1))
    assert signed_in.get("/cities").json() == ["Pune", "Nagpur"]


def test_other_clients_need_their_own_token(signed_in, workspace):
    row = _seed(workspace, business_name="Secret Co")
    stranger = TestClient(app)

    assert stranger.get("/leads").status_code == 401
    assert stranger.delete(f"/leads/{row['id']}").status_code == 401
    assert stranger.get("/leads", headers={"Authorization": "Bearer forged"}).status_code == 401
    assert stranger.get("/auth/session").status_code == 401
    assert stranger.post("/auth/sign-out").status_code == 401

    assert [lead["business_name"] for lead in signed_in.get("/leads").json()] == ["Secret Co"]
    assert workspace.sessions.current_session() is not None


def test_token_validated_by_provider_is_accepted(client, workspace):
    workspace.sessions.provider.valid_tokens["token-laptop"] = {"id": "user-2", "email": "staff@example.com"}
    client.headers.update({"Authorization": "Bearer token-laptop"})
    response = client.post(
        "/leads",
        json={"business_name": "Laptop Lead", "contact_person": "Meera", "phone": "9000000002"},
    )
    assert response.status_code == 201
    assert response.json()["created_by"] == "user-2"


def test_signed_out_token_stops_working(signed_in):
    assert signed_in.post("/auth/sign-out").status_code == 204
    assert signed_in.get("/leads").status_code == 401


def test_delete_unknown_id_is_not_found(signed_in, workspace):
    _seed(workspace)
    assert signed_in.delete("/leads/not-a-uuid").status_code == 404
    assert ("delete", "leads") not in workspace.store.calls


def test_attachments_route(signed_in, workspace):
    row = _seed(workspace)
    workspace.store.seed(
        "attachments",
        {
            "id": "a1",
            "lead_id": row["id"],
            "file_name": "proposal.pdf",
            "file_url": "https://files.example.com/proposal.pdf",
            "file_type": None,
            "uploaded_at": datetime(2024, 3, 2),
            "uploaded_by": "user-1",
        },
    )
    files = signed_in.get(f"/leads/{row['id']}/attachments").json()
    assert [attachment["file_name"] for attachment in files] == ["proposal.pdf"]
    assert signed_in.get("/leads/unknown/attachments").status_code == 404
