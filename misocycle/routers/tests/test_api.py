"""HTTP tests for the v1 API over the in-memory backend."""

from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from misocycle.cycles.config_loader import load_cycle_config
from misocycle.main import create_app
from misocycle.services.cycle_service import CycleService
from misocycle.stores.memory import InMemoryStore

TODAY = date(2024, 3, 15)
HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def client():
    app = create_app()
    with TestClient(app) as test_client:
        app.state.cycle_service = CycleService(
            InMemoryStore(), config=load_cycle_config(), clock=lambda: TODAY
        )
        yield test_client


def _log(client: TestClient, **body) -> dict:
    response = client.post("/api/v1/logs", json=body, headers=HEADERS)
    assert response.status_code == 200, response.text
    return response.json()


class TestHealthAndAuth:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["storage_backend"] == "memory"

    def test_missing_user_header(self, client: TestClient) -> None:
        assert client.get("/api/v1/cycles").status_code == 401
        assert client.get("/api/v1/cycles", headers={"X-User-Id": "  "}).status_code == 401


class TestLogs:
    def test_bleeding_log_opens_cycle(self, client: TestClient) -> None:
        body = _log(client, log_date="2024-03-15", flow_intensity=4, mood=3)
        assert body["outcome"] == "first_cycle"
        assert body["created_cycle"] is True
        assert body["confidence"] == "high"
        assert body["cycle"]["is_active"] is True
        assert body["log"]["flow_intensity"] == 4
        assert body["log"]["cycle_id"] == body["cycle"]["cycle_id"]
        assert body["logging_streak"] == 1

    def test_fetch_and_delete_log(self, client: TestClient) -> None:
        created = _log(
            client,
            log_date="2024-03-14",
            symptoms=[{"symptom_type": "headache", "severity": 2}],
        )
        fetched = client.get("/api/v1/logs/2024-03-14", headers=HEADERS).json()
        assert fetched["symptoms"] == [{"symptom_type": "headache", "severity": 2}]

        listed = client.get("/api/v1/logs", headers=HEADERS).json()
        assert [log["log_date"] for log in listed] == ["2024-03-14"]

        log_id = created["log"]["log_id"]
        assert client.delete(f"/api/v1/logs/{log_id}", headers=HEADERS).status_code == 204
        assert client.delete(f"/api/v1/logs/{log_id}", headers=HEADERS).status_code == 404
        assert client.get("/api/v1/logs/2024-03-14", headers=HEADERS).status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {"log_date": "2024-03-16", "flow_intensity": 3},
            {"log_date": "2024-03-15", "mood": 6},
            {"log_date": "2024-03-15", "flow_intensity": 9},
            {"log_date": "2024-03-15", "symptoms": [{"symptom_type": "sneezing"}]},
        ],
    )
    def test_invalid_logs(self, client: TestClient, body: dict) -> None:
        response = client.post("/api/v1/logs", json=body, headers=HEADERS)
        assert response.status_code == 422

    def test_period_range(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/logs/period",
            json={"start_date": "2024-03-10", "end_date": "2024-03-14", "flow_intensity": 4},
            headers=HEADERS,
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["cycle"]["period_length"] == 5
        assert [log["flow_intensity"] for log in body["logs"]] == [3, 4, 4, 4, 3]

    def test_period_range_end_before_start(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/logs/period",
            json={"start_date": "2024-03-10", "end_date": "2024-03-08"},
            headers=HEADERS,
        )
        assert response.status_code == 422


class TestCycles:
    def test_list_end_and_delete(self, client: TestClient) -> None:
        cycle_id = _log(client, log_date="2024-03-10", flow_intensity=3)["cycle"]["cycle_id"]

        cycles = client.get("/api/v1/cycles", headers=HEADERS).json()
        assert [c["cycle_id"] for c in cycles] == [cycle_id]

        ended = client.post(
            f"/api/v1/cycles/{cycle_id}/end", json={"end_date": "2024-03-13"}, headers=HEADERS
        )
        assert ended.status_code == 200
        assert ended.json()["period_length"] == 4

        too_long = client.post(
            f"/api/v1/cycles/{cycle_id}/end", json={"end_date": "2024-03-30"}, headers=HEADERS
        )
        assert too_long.status_code == 422

        remaining = client.delete(f"/api/v1/cycles/{cycle_id}", headers=HEADERS)
        assert remaining.status_code == 200
        assert remaining.json() == []

    def test_unknown_cycle(self, client: TestClient) -> None:
        response = client.post(
            f"/api/v1/cycles/{uuid4()}/end", json={"end_date": "2024-03-13"}, headers=HEADERS
        )
        assert response.status_code == 404
        assert client.delete(f"/api/v1/cycles/{uuid4()}", headers=HEADERS).status_code == 404

    def test_recalculate(self, client: TestClient) -> None:
        for day in ("2024-01-19", "2024-02-16", "2024-03-15"):
            _log(client, log_date=day, flow_intensity=3)
        cycles = client.post("/api/v1/cycles/recalculate", headers=HEADERS).json()
        assert [c["cycle_length"] for c in cycles] == [None, 28, 28]


class TestReadModels:
    def test_calendar(self, client: TestClient) -> None:
        _log(client, log_date="2024-03-15", flow_intensity=2)
        body = client.get("/api/v1/calendar/2024/3", headers=HEADERS).json()
        assert body["weekday_headers"][0] == "Sun"
        assert len(body["days"]) == 36
        assert body["days"][0]["category"] == "empty"
        today = [d for d in body["days"] if d["is_today"]]
        assert len(today) == 1
        assert today[0]["category"] == "period"
        assert today[0]["intensity"] == 2

    def test_calendar_rejects_bad_month(self, client: TestClient) -> None:
        assert client.get("/api/v1/calendar/2024/13", headers=HEADERS).status_code == 422

    def test_predictions(self, client: TestClient) -> None:
        _log(client, log_date="2024-03-15", flow_intensity=3)
        body = client.get("/api/v1/predictions", headers=HEADERS).json()
        assert body["next_period"]["predicted_start"] == "2024-04-12"
        assert body["next_period"]["confidence"] == 0.5
        assert body["current_cycle_day"] == 1
        assert body["current_phase"] == "menstrual"
        assert body["confidence_text"] == "Moderate confidence"
        assert body["period_prediction_text"] == "Period in 28 days"
        assert body["notification_payload"]["next_period_date"] == "2024-04-12"
        assert len(body["fertile_window"]["peak_days"]) == 3

    def test_predictions_without_data(self, client: TestClient) -> None:
        body = client.get("/api/v1/predictions", headers=HEADERS).json()
        assert body["next_period"] is None
        assert body["notification_payload"] == {
            "next_period_date": None,
            "fertile_window_start": None,
            "ovulation_date": None,
        }

    def test_insights(self, client: TestClient) -> None:
        _log(client, log_date="2024-03-15", mood=4, symptoms=[{"symptom_type": "cramps"}])
        body = client.get("/api/v1/insights", headers=HEADERS).json()
        assert body["has_enough_data"] is False
        assert body["average_mood"] == 4.0
        assert body["top_symptoms"][0]["symptom"] == "cramps"
        assert body["symptoms_by_phase"] == {"follicular": ["cramps"]}

    def test_export(self, client: TestClient) -> None:
        _log(client, log_date="2024-03-15", flow_intensity=3)
        response = client.get("/api/v1/export", headers=HEADERS)
        assert response.status_code == 200
        assert "MisoCycle_Export_2024-03-15.json" in response.headers["content-disposition"]
        body = response.json()
        assert body["format_version"] == 1
        assert len(body["cycles"]) == 1
        assert body["daily_logs"][0]["flow_intensity"] == 3


class TestSettings:
    def test_get_and_update(self, client: TestClient) -> None:
        settings = client.get("/api/v1/settings", headers=HEADERS).json()
        assert settings["average_cycle_length"] == 28
        assert settings["logging_streak"] == 0

        updated = client.patch(
            "/api/v1/settings", json={"average_cycle_length": 31}, headers=HEADERS
        )
        assert updated.status_code == 200
        assert updated.json()["average_cycle_length"] == 31

        invalid = client.patch(
            "/api/v1/settings", json={"average_cycle_length": 70}, headers=HEADERS
        )
        assert invalid.status_code == 422

    def test_streak(self, client: TestClient) -> None:
        _log(client, log_date="2024-03-15", mood=3)
        assert client.get("/api/v1/settings", headers=HEADERS).json()["logging_streak"] == 1
        reset = client.post("/api/v1/settings/streak/reset", headers=HEADERS).json()
        assert reset["logging_streak"] == 0

    def test_onboarding(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/settings/onboarding",
            json={
                "average_cycle_length": 30,
                "average_period_length": 4,
                "last_period_start": "2024-03-12",
            },
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["onboarding_completed"] is True
        cycles = client.get("/api/v1/cycles", headers=HEADERS).json()
        assert [c["start_date"] for c in cycles] == ["2024-03-12"]

    def test_onboarding_future_period(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/settings/onboarding",
            json={"last_period_start": "2024-04-01"},
            headers=HEADERS,
        )
        assert response.status_code == 422
