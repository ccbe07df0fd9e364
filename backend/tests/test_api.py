from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from leadhub.auth.tokens import issue_token
from leadhub.main import AppServices, create_app


@pytest.fixture
def client(registry, dispatcher, directory, commands, seeded):
    services = AppServices(registry=registry, dispatcher=dispatcher, directory=directory, commands=commands)
    with TestClient(create_app(services=services)) as c:
        yield c


def _auth(sub: str, role: str, name: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(sub=sub, role=role, name=name)}"}


PM = _auth("pm-1", "pm", "Pat Manager")
V1 = _auth("V1", "vendor")
V2 = _auth("V2", "vendor")


def _project(client) -> str:
    r = client.post("/api/projects", json={"name": "Riverside Clinic", "location": "Austin"}, headers=PM)
    assert r.status_code == 201
    return r.json()["project"]["projectId"]


def _send(client, project_id: str, vendor_ids: list[str]) -> dict[str, str]:
    r = client.post(
        "/api/pm-leads/send-leads",
        json={
            "projectId": project_id,
            "vendorIds": vendor_ids,
            "leadDetails": {"leadTitle": "Panel upgrade", "leadDescription": "Replace main panel"},
        },
        headers=PM,
    )
    assert r.status_code == 201, r.text
    return {x["vendorId"]: x["leadId"] for x in r.json()["leads"]}


def test_health_is_public_and_echoes_request_id(client):
    r = client.get("/", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 200
    assert r.json()["status"] == "running"
    assert r.headers.get("X-Request-Id") == "abc-123"


def test_missing_token_is_problem_json(client):
    r = client.get("/api/pm-leads")
    assert r.status_code == 401
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    assert body["title"] == "Unauthorized"
    assert body.get("requestId")


def test_token_without_known_role_is_forbidden(client):
    r = client.get("/api/pm-leads", headers=_auth("x", "admin"))
    assert r.status_code == 403


def test_unknown_route_is_problem_json(client):
    r = client.get("/api/nothing-here", headers=PM)
    assert r.status_code == 404
    assert r.json()["detail"] == "Route not found"


def test_lead_lifecycle_over_http(client):
    pid = _project(client)
    lead_id = _send(client, pid, ["V1"])["V1"]

    r = client.get("/api/vendor-leads", headers=V1)
    assert r.status_code == 200
    assert r.json()["summary"]["pending"] == 1

    r = client.post(f"/api/vendor-leads/{lead_id}/respond", json={"accepted": True, "message": "Ready"}, headers=V1)
    assert r.status_code == 200
    assert r.json()["lead"]["status"] == "vendor_accepted"

    r = client.put(f"/api/pm-leads/{lead_id}/decision", json={"approved": True}, headers=V1)
    assert r.status_code == 403
    body = r.json()
    assert body["title"] == "Forbidden"
    assert body["extensions"]["errorKind"] == "Forbidden"

    r = client.put(
        f"/api/pm-leads/{lead_id}/decision", json={"approved": True, "workspaceAccess": True}, headers=PM
    )
    assert r.status_code == 200
    lead = r.json()["lead"]
    assert lead["status"] == "pm_approved"

    r = client.get(f"/api/workspaces/{lead['workspaceId']}/access", headers=V1)
    assert r.status_code == 200
    assert r.json()["accessLevel"] == "approved_vendor"

    r = client.get(f"/api/workspaces/{lead['workspaceId']}/access", headers=V2)
    assert r.status_code == 403

    r = client.get("/api/pm-leads/stats", headers=PM)
    assert r.json()["stats"]["approvalRate"] == 100.0


def test_invalid_state_is_409(client):
    pid = _project(client)
    lead_id = _send(client, pid, ["V1"])["V1"]
    r = client.put(f"/api/pm-leads/{lead_id}/decision", json={"approved": True}, headers=PM)
    assert r.status_code == 409
    assert r.json()["extensions"]["errorKind"] == "InvalidState"


def test_invalid_body_lists_field_errors(client):
    pid = _project(client)
    lead_id = _send(client, pid, ["V1"])["V1"]
    r = client.post(f"/api/vendor-leads/{lead_id}/respond", json={"accepted": "maybe"}, headers=V1)
    assert r.status_code == 400
    body = r.json()
    assert body["title"] == "InvalidArgument"
    assert body["errors"][0]["loc"] == ["accepted"]


def test_websocket_rejects_missing_token(client):
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/notifications/ws") as ws:
            ws.receive_json()


def test_websocket_receives_new_lead(client, registry):
    token = issue_token(sub="V1", role="vendor")
    with client.websocket_connect(f"/api/notifications/ws?token={token}") as ws:
        hello = ws.receive_json()
        assert hello == {
            "type": "connection",
            "message": "WebSocket connection established",
            "userId": "V1",
            "userType": "vendor",
        }
        ws.send_text('{"type": "ping"}')
        assert ws.receive_json()["type"] == "pong"
        assert registry.active_count() == 1

        pid = _project(client)
        lead_id = _send(client, pid, ["V1"])["V1"]
        frame = ws.receive_json()
        assert frame["type"] == "notification"
        assert frame["notification"]["type"] == "new_lead"
        assert frame["notification"]["data"]["leadId"] == lead_id
