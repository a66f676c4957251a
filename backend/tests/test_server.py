"""
Tests for the HTTP API

Runs the FastAPI app in-process with fixture-backed providers and a fake clock
for the exposure timers.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import server
from environmental_service import EnvironmentalService, SnapshotCache
from exposure_timer_service import TimerRegistry
from providers import ProviderSet
from providers.fake_providers import (
    FakeCoastalProvider,
    FakeElevationProvider,
    FakeSnowProvider,
    FakeWaterProvider,
    FakeWeatherProvider,
)

NOW = datetime(2026, 7, 15, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = NOW

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def fake_providers(weather=None):
    return ProviderSet(
        weather=weather or FakeWeatherProvider(),
        elevation=FakeElevationProvider(),
        snow=FakeSnowProvider(),
        water=FakeWaterProvider(),
        coastal=FakeCoastalProvider(),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api(monkeypatch, clock):
    providers = fake_providers()
    monkeypatch.setattr(server, "providers", providers)
    monkeypatch.setattr(
        server,
        "environmental_service",
        EnvironmentalService(providers, SnapshotCache(), clock=lambda: NOW),
    )
    monkeypatch.setattr(server, "timer_registry", TimerRegistry(clock=clock))
    return TestClient(server.app)


class TestHealth:

    def test_health(self, api):
        response = api.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAssess:

    def test_assess_uses_provider_uv(self, api):
        response = api.post("/api/uv/assess", json={"latitude": 39.74, "longitude": -104.99})
        assert response.status_code == 200
        data = response.json()
        assessment = data["assessment"]
        assert assessment["base_uv_index"] == 8
        # 8 x 1.16 altitude x 1.15 mountainous x ~0.98 mid-July
        assert assessment["adjusted_uv_index"] == 10
        assert assessment["risk_level"] == "very_high"
        assert assessment["risk_label"] == "Very High"
        assert assessment["time_to_burn_minutes"] == 10.0
        assert data["cloud_category"] == "clear"
        assert data["environment"]["terrain_type"] == "mountainous"

    def test_explicit_uv_and_clouds(self, api):
        response = api.post("/api/uv/assess", json={
            "latitude": 10.0, "longitude": 10.0, "uv_index": 6, "cloud_cover_pct": 95,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["cloud_category"] == "overcast"
        assert data["assessment"]["adjusted_uv_index"] < 6

    def test_zero_uv(self, api):
        response = api.post("/api/uv/assess", json={"latitude": 10.0, "longitude": 10.0, "uv_index": 0})
        assessment = response.json()["assessment"]
        assert assessment["adjusted_uv_index"] == 0
        assert assessment["time_to_burn_minutes"] is None
        assert assessment["risk_factors"] == []

    def test_fresh_snow_reported(self, api):
        response = api.post("/api/uv/assess", json={"latitude": 39.19, "longitude": -106.82, "uv_index": 6})
        factors = {f["type"]: f for f in response.json()["assessment"]["risk_factors"]}
        assert factors["snow"]["severity"] == "extreme"
        assert factors["snow"]["color"].startswith("#")

    @pytest.mark.parametrize("payload", [
        {"latitude": 95.0, "longitude": 0.0},
        {"latitude": 0.0, "longitude": 200.0},
        {"latitude": 0.0, "longitude": 0.0, "uv_index": -1},
        {"latitude": 0.0, "longitude": 0.0, "cloud_cover_pct": 120},
    ])
    def test_invalid_request(self, api, payload):
        assert api.post("/api/uv/assess", json=payload).status_code == 422

    def test_weather_unavailable(self, api, monkeypatch):
        monkeypatch.setattr(server, "providers", fake_providers(FakeWeatherProvider(data={"locations": {}})))
        response = api.post("/api/uv/assess", json={"latitude": 10.0, "longitude": 10.0})
        assert response.status_code == 503


class TestForecast:

    def test_fixture_forecast(self, api):
        response = api.post("/api/uv/forecast", json={"latitude": 39.74, "longitude": -104.99})
        assert response.status_code == 200
        data = response.json()
        hours = data["hours"]
        assert len(hours) == 24
        peak_uv = max(h["adjusted_uv_index"] for h in hours)
        assert data["peak"]["adjusted_uv_index"] == peak_uv
        first_peak = next(h for h in hours if h["adjusted_uv_index"] == peak_uv)
        assert data["peak"]["timestamp"] == first_peak["timestamp"]

    def test_explicit_hours_sorted(self, api):
        response = api.post("/api/uv/forecast", json={
            "latitude": 10.0,
            "longitude": 10.0,
            "hours": [
                {"date": "2026-07-15T14:00:00+00:00", "uv_index": 4},
                {"date": "2026-07-15T12:00:00+00:00", "uv_index": 7},
            ],
        })
        data = response.json()
        assert [h["base_uv_index"] for h in data["hours"]] == [7, 4]
        assert data["peak"]["base_uv_index"] == 7

    def test_empty_hours_has_no_peak(self, api, monkeypatch):
        weather = FakeWeatherProvider(data={"default": {"uv_index": 3, "cloud_cover_pct": 0, "hourly": []}})
        monkeypatch.setattr(server, "providers", fake_providers(weather))
        data = api.post("/api/uv/forecast", json={"latitude": 10.0, "longitude": 10.0}).json()
        assert data["hours"] == []
        assert data["peak"] is None


class TestEnvironment:

    def test_coastal_environment(self, api):
        response = api.get("/api/environment", params={"lat": 25.79, "lon": -80.13})
        assert response.status_code == 200
        data = response.json()
        assert data["terrain_type"] == "coastal"
        assert data["water_body_name"] == "Atlantic Ocean"
        assert data["is_coastal"] is True

    def test_no_water_distance_is_null(self, api):
        data = api.get("/api/environment", params={"lat": 10.0, "lon": 10.0, "refresh": True}).json()
        assert data["distance_to_water_meters"] is None
        assert data["water_body_type"] == "none"

    def test_out_of_range(self, api):
        assert api.get("/api/environment", params={"lat": -91, "lon": 0}).status_code == 422


class TestCelestial:

    @pytest.mark.parametrize("body", ["sun", "moon"])
    def test_position(self, api, body):
        response = api.get("/api/celestial/position", params={
            "lat": 39.74, "lon": -104.99, "body": body, "at": "2026-07-15T18:00:00+00:00",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["body"] == body
        assert 0 <= data["azimuth_degrees"] < 360
        assert -90 <= data["altitude_degrees"] <= 90
        assert 0 <= data["time_fraction"] < 1

    def test_daylight(self, api):
        response = api.get("/api/celestial/daylight", params={
            "lat": 39.74, "lon": -104.99, "date": "2026-06-21", "tz": "America/Denver",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["polar"] is False
        assert data["day"] == "2026-06-21"
        assert 14.5 * 60 < data["duration_minutes"] < 15.5 * 60

    def test_daylight_default_zone(self, api):
        response = api.get("/api/celestial/daylight", params={
            "lat": 39.74, "lon": -104.99, "date": "2026-06-21",
        })
        data = response.json()
        assert data["polar"] is False
        assert data["sunrise"] is not None
        assert data["sunset"] is not None
        assert 14.5 * 60 < data["duration_minutes"] < 15.5 * 60

    def test_polar_night(self, api):
        data = api.get("/api/celestial/daylight", params={"lat": 80.0, "lon": 15.0, "date": "2026-12-21"}).json()
        assert data["polar"] is True
        assert data["sunrise"] is None

    def test_unknown_timezone(self, api):
        response = api.get("/api/celestial/daylight", params={"lat": 0, "lon": 0, "tz": "Mars/Olympus"})
        assert response.status_code == 400


class TestTimers:

    def test_unknown_timer(self, api):
        assert api.get("/api/timers/nobody").status_code == 404
        assert api.post("/api/timers/nobody/pause").status_code == 404

    def test_start_creates_timer(self, api):
        response = api.post("/api/timers/user-1/start")
        assert response.status_code == 200
        data = response.json()
        assert data["phase"] == "running"
        assert data["phase_label"] == "Tracking exposure"
        assert data["time_to_burn_minutes"] is None
        assert api.get("/api/timers/user-1").status_code == 200

    def test_exposure_flow(self, api, clock):
        api.post("/api/timers/user-1/start")
        response = api.put("/api/timers/user-1/uv", json={"adjusted_uv_index": 10})
        data = response.json()
        assert data["current_adjusted_uv"] == 10
        assert data["time_to_burn_minutes"] == 10.0
        assert [r["reminder_type"] for r in data["scheduled_reminders"]] == ["exposure_exceeded"]

        clock.advance(300)
        data = api.post("/api/timers/user-1/tick").json()
        assert data["should_prompt_sunscreen"] is True
        assert data["exposure_status"] == "safe"

        clock.advance(301)
        data = api.post("/api/timers/user-1/tick").json()
        assert data["events"] == ["exceeded"]
        assert data["phase"] == "exceeded"
        assert data["status_message"] == "Exceeded safe time"
        assert [r["reminder_type"] for r in data["delivered_reminders"]] == ["exposure_exceeded"]

        response = api.post("/api/timers/user-1/pause")
        assert response.status_code == 409

        data = api.post("/api/timers/user-1/reset").json()
        assert data["phase"] == "not_started"
        assert data["elapsed_seconds"] == 0.0
        assert data["total_exposure_seconds_today"] == pytest.approx(601.0)

    def test_sunscreen_flow(self, api, clock):
        api.post("/api/timers/user-2/start")
        api.put("/api/timers/user-2/uv", json={"adjusted_uv_index": 2})
        clock.advance(60)
        data = api.post("/api/timers/user-2/sunscreen").json()
        assert data["phase"] == "sunscreen_applied"
        types = [r["reminder_type"] for r in data["scheduled_reminders"]]
        assert "sunscreen_reapply" in types

        data = api.post("/api/timers/user-2/cancel-reapply").json()
        assert data["sunscreen_reapply_deadline"] is None
        assert api.post("/api/timers/user-2/cancel-reapply").status_code == 409

        assert api.post("/api/timers/user-2/resume").json()["phase"] == "running"

    def test_uv_update_from_location(self, api):
        api.post("/api/timers/user-3/start")
        data = api.put("/api/timers/user-3/uv", json={"latitude": 10.0, "longitude": 10.0, "uv_index": 5}).json()
        assert data["current_adjusted_uv"] > 0

    def test_uv_update_needs_input(self, api):
        assert api.put("/api/timers/user-4/uv", json={}).status_code == 400

    def test_unknown_action(self, api):
        assert api.post("/api/timers/user-1/explode").status_code == 422
