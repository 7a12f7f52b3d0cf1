from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

from app import create_app
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, admin_token: str | None):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        admin_token=admin_token,
    )


def _build_client(tmp_path, admin_token: str | None = None) -> TestClient:
    settings = _build_test_settings(tmp_path, "api.db", admin_token)
    return TestClient(create_app(settings))


def _login(client: TestClient, admin_token: str) -> dict[str, str]:
    response = client.post("/login", json={"admin_token": admin_token})
    assert response.status_code == 200
    access_token = response.json()["access_token"]
    return {"Authorization": f"Bearer {access_token}"}


def _application(room_number: str = "101", **overrides) -> dict:
    payload = {
        "applicant_name": "Alice",
        "enrollment_id": "E1",
        "contact": "c1",
        "room_number": room_number,
        "roommate_count": 2,
    }
    payload.update(overrides)
    return payload


def test_apply_and_review_flow(tmp_path):
    with _build_client(tmp_path) as client:
        rooms = client.get("/rooms")
        assert rooms.status_code == 200
        assert len(rooms.json()) == 7

        available = client.get("/rooms/available").json()
        assert "105" not in {room["number"] for room in available}

        created = client.post("/requests", json=_application())
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "pending"
        assert body["occupant_count"] == 1
        request_id = body["id"]

        room_101 = next(room for room in client.get("/rooms").json() if room["number"] == "101")
        assert room_101["occupied"] == 0

        approved = client.post(f"/requests/{request_id}/approve")
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        room_101 = next(room for room in client.get("/rooms").json() if room["number"] == "101")
        assert room_101 == {"number": "101", "capacity": 2, "occupied": 1, "free_slots": 1}

        again = client.post(f"/requests/{request_id}/approve")
        assert again.status_code == 409

        reject_after_approve = client.post(f"/requests/{request_id}/reject")
        assert reject_after_approve.status_code == 409

        detail = client.get(f"/requests/{request_id}")
        assert detail.status_code == 200
        assert detail.json()["applicant_name"] == "Alice"


def test_request_list_is_newest_first(tmp_path):
    with _build_client(tmp_path) as client:
        first = client.post("/requests", json=_application("101")).json()["id"]
        second = client.post("/requests", json=_application("102", applicant_name="Bob")).json()["id"]

        listed = client.get("/requests").json()

        assert [item["id"] for item in listed] == [second, first]


def test_submission_errors_map_to_status_codes(tmp_path):
    with _build_client(tmp_path) as client:
        assert client.post("/requests", json=_application("105")).status_code == 409
        assert client.post("/requests", json=_application("999")).status_code == 404

        blank = client.post("/requests", json=_application(applicant_name="   "))
        assert blank.status_code == 400
        assert blank.json()["detail"] == "Please fill all fields."

        assert client.post("/requests", json=_application(roommate_count=0)).status_code == 422
        assert client.get("/requests").json() == []


def test_unknown_request_returns_404(tmp_path):
    with _build_client(tmp_path) as client:
        assert client.get("/requests/nope").status_code == 404
        assert client.post("/requests/nope/approve").status_code == 404
        assert client.post("/requests/nope/reject").status_code == 404


def test_reject_pending_request(tmp_path):
    with _build_client(tmp_path) as client:
        request_id = client.post("/requests", json=_application()).json()["id"]

        rejected = client.post(f"/requests/{request_id}/reject")

        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"
        assert client.post(f"/requests/{request_id}/approve").status_code == 409


def test_admin_endpoints_require_session_when_token_configured(tmp_path):
    admin_token = "secret-admin-token"
    with _build_client(tmp_path, admin_token) as client:
        request_id = client.post("/requests", json=_application()).json()["id"]

        assert client.get("/requests").status_code == 401
        assert client.post(f"/requests/{request_id}/approve").status_code == 401
        assert client.post("/reset").status_code == 401

        headers = _login(client, admin_token)

        assert client.get("/requests", headers=headers).status_code == 200
        approved = client.post(f"/requests/{request_id}/approve", headers=headers)
        assert approved.status_code == 200

        assert client.post("/logout", headers=headers).status_code == 204
        assert client.get("/requests", headers=headers).status_code == 401


def test_login_rejects_invalid_admin_token(tmp_path):
    with _build_client(tmp_path, "real-admin-token") as client:
        response = client.post("/login", json={"admin_token": "wrong-token"})
        assert response.status_code == 401


def test_login_unavailable_without_configured_token(tmp_path):
    with _build_client(tmp_path) as client:
        response = client.post("/login", json={"admin_token": "anything"})
        assert response.status_code == 401


def test_reset_restores_seed_rooms(tmp_path):
    with _build_client(tmp_path) as client:
        request_id = client.post("/requests", json=_application()).json()["id"]
        client.post(f"/requests/{request_id}/approve")

        reset = client.post("/reset")

        assert reset.status_code == 200
        assert reset.json() == {"room_count": 7, "request_count": 0}
        assert client.get("/requests").json() == []
        room_101 = next(room for room in client.get("/rooms").json() if room["number"] == "101")
        assert room_101["occupied"] == 0
