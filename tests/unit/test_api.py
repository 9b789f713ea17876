from fastapi.testclient import TestClient

from careertrack.api.main import create_app
from careertrack.config import Settings

H = {"X-User-Id": "u1"}


def _client(tmp_path) -> TestClient:
    return TestClient(create_app(Settings(database_path=str(tmp_path / "api.db"))))


def test_health(tmp_path) -> None:
    with _client(tmp_path) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_missing_user_header_is_401(tmp_path) -> None:
    with _client(tmp_path) as client:
        r = client.post("/applications", json={"company": "Acme", "role": "SWE"})
        assert r.status_code == 401
        assert r.json()["detail"]["code"] == "not_authenticated"
        assert client.get("/analytics").status_code == 401


def test_application_lifecycle_over_http(tmp_path) -> None:
    with _client(tmp_path) as client:
        r = client.post("/applications", json={"company": "Acme", "role": "SWE", "platform": "LinkedIn"}, headers=H)
        assert r.status_code == 201
        app_id = r.json()["id"]
        assert r.json()["status"] == "Applied"

        r = client.post(f"/applications/{app_id}/transition", json={"status": "Interview"}, headers=H)
        assert r.status_code == 409
        assert r.json()["detail"]["kind"] == "illegal_skip"

        r = client.post(f"/applications/{app_id}/transition", json={"status": "OA"}, headers=H)
        assert r.status_code == 200
        assert r.json()["status"] == "OA"

        r = client.get(f"/applications/{app_id}/next-statuses", headers=H)
        assert r.json() == {"current": "OA", "terminal": False, "next_statuses": ["Interview"]}

        timeline = client.get(f"/applications/{app_id}/timeline", headers=H).json()
        assert [e["event_type"] for e in timeline] == ["status_change", "created"]

        r = client.post(f"/applications/{app_id}/notes", json={"content": "  "}, headers=H)
        assert r.status_code == 422
        r = client.post(f"/applications/{app_id}/notes", json={"content": "Recruiter call Friday"}, headers=H)
        assert r.status_code == 201

        analytics = client.get("/analytics", headers=H).json()
        assert analytics["total_applications"] == 1
        assert [f["count"] for f in analytics["conversion_funnel"]] == [1, 1, 0, 0, 0]

        progress = client.get("/progress/weekly", headers=H).json()
        assert progress["applications_added"] == 1
        assert progress["status_changes"] == 1

        assert client.get("/applications/platforms", headers=H).json() == ["LinkedIn"]
        assert client.get("/applications", headers={"X-User-Id": "u2"}).json() == []
        assert client.get(f"/applications/{app_id}", headers={"X-User-Id": "u2"}).status_code == 404

        assert client.delete(f"/applications/{app_id}", headers=H).status_code == 200
        assert client.get(f"/applications/{app_id}", headers=H).status_code == 404


def test_suggestion_ledger_over_http(tmp_path) -> None:
    today = "2026-01-01"
    with _client(tmp_path) as client:
        r = client.post(
            "/applications",
            json={"company": "Acme", "role": "SWE", "deadline_date": None, "applied_date": today},
            headers=H,
        )
        assert r.status_code == 201

        assert client.get("/suggestions", headers=H).json() == []
        assert client.get("/insights?display=true", headers=H).status_code == 200

        r = client.post("/suggestions/follow_up_x/dismiss", headers=H)
        assert r.status_code == 200
        r = client.post("/suggestions/follow_up_y/snooze", json={"days": 3}, headers=H)
        assert r.status_code == 200
        r = client.post("/suggestions/follow_up_y/snooze", json={"days": 0}, headers=H)
        assert r.status_code == 422
        assert client.delete("/suggestions/follow_up_x", headers=H).status_code == 200


def test_create_over_http_cannot_choose_a_status(tmp_path) -> None:
    with _client(tmp_path) as client:
        r = client.post("/applications", json={"company": "Acme", "role": "SWE", "status": "Offer"}, headers=H)
        assert r.status_code == 422
        assert client.get("/applications", headers=H).json() == []

        analytics = client.get("/analytics", headers=H).json()
        assert analytics["total_applications"] == 0
        assert [f["count"] for f in analytics["conversion_funnel"]] == [0, 0, 0, 0, 0]
