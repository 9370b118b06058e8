"""
Tests for the HTTP API.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient


PROVIDER_TEXT = """Here is my assessment:
{
  "overallScore": 80,
  "overallStatus": "on_track",
  "summary": "Doing well.",
  "motor": {"score": 85, "status": "on_track", "achievedMilestoneIds": ["pincer-grasp"]},
  "personalizedTips": ["Offer finger foods"]
}"""


class FakeProvider:
    """Stands in for the LLM-backed provider."""

    def assess(self, profile, notes=None, region=None, interests=None):
        from src.engines import build_report, parse_provider_response

        return build_report(parse_provider_response(PROVIDER_TEXT), profile, region=region)


@pytest.fixture
def registry():
    from src.engines import AchievementRegistry

    return AchievementRegistry(remote=None)


@pytest.fixture
def client(registry):
    from server import app, get_registry

    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


PROFILE = {"age_months": 10, "sex": "female", "weight_kg": 8.2, "height_cm": 70.1}


class TestReferenceEndpoints:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_milestones_for_age(self, client):
        response = client.get("/api/milestones/10")
        assert response.status_code == 200

        data = response.json()
        ids = {m["id"] for m in data["milestones"]}
        assert {"pincer-grasp", "bangs-objects"} <= ids
        assert len(data["sources"]) == 8

    def test_milestones_negative_age(self, client):
        assert client.get("/api/milestones/-1").status_code == 400

    def test_milestones_non_numeric_age(self, client):
        assert client.get("/api/milestones/ten").status_code == 422

    def test_growth_percentiles(self, client):
        response = client.post("/api/growth-percentiles", json={
            "age_months": 12, "sex": "male", "weight_kg": 9.6, "height_cm": 75.7,
            "head_circumference_cm": 46.1,
        })
        assert response.status_code == 200

        percentiles = response.json()["percentiles"]
        assert [p["metric"] for p in percentiles] == ["weight", "height", "head_circumference"]
        assert percentiles[0]["percentile"] == 50.0
        assert percentiles[0]["interpretation"] == "Within typical range"

    def test_growth_percentiles_invalid(self, client):
        response = client.post("/api/growth-percentiles", json={**PROFILE, "weight_kg": -1})
        assert response.status_code == 422

    def test_sources_for_region(self, client):
        response = client.get("/api/sources", params={"region": "afro"})
        assert response.status_code == 200
        assert len(response.json()["sources"]) == 5

    def test_sources_unknown_region(self, client):
        assert client.get("/api/sources", params={"region": "mars"}).status_code == 400


class TestAssessmentEndpoints:
    def test_assessments_from_output(self, client):
        response = client.post("/api/assessments", json={
            "age_months": 10,
            "provider_output": {"motor": {"score": 85, "status": "on_track",
                                          "achievedMilestoneIds": ["pincer-grasp"]}},
        })
        assert response.status_code == 200

        data = response.json()
        assert set(data) == {"motor", "language", "cognitive", "social"}
        assert [m["id"] for m in data["motor"]["achieved_milestones"]] == ["pincer-grasp"]
        assert data["language"]["score"] == 50
        assert data["language"]["status"] == "unknown"

    def test_assessments_from_text(self, client):
        response = client.post("/api/assessments", json={"age_months": 10, "provider_text": PROVIDER_TEXT})
        assert response.status_code == 200
        assert response.json()["motor"]["score"] == 85

    def test_unparseable_provider_text(self, client):
        response = client.post("/api/assessments", json={"age_months": 10, "provider_text": "Sorry!"})
        assert response.status_code == 502

    def test_missing_provider_payload(self, client):
        assert client.post("/api/assessments", json={"age_months": 10}).status_code == 400

    def test_analysis_without_provider(self, client, monkeypatch):
        from src.llm import set_client

        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        set_client(None)
        response = client.post("/api/analysis", json={"profile": PROFILE})
        assert response.status_code == 503

    def test_analysis_and_export(self, client, registry):
        from server import app, get_provider

        app.dependency_overrides[get_provider] = lambda: FakeProvider()
        response = client.post("/api/analysis", json={
            "profile": PROFILE,
            "region": "euro",
            "child_id": "child-1",
            "confirm_achievements": True,
        })
        assert response.status_code == 200

        data = response.json()
        assert data["summary"]["overall_score"] == 80
        assert data["confirmed"] == ["pincer-grasp"]
        assert len(data["report"]["sources"]) == 5
        assert registry.get("child-1").is_achieved("pincer-grasp")

        report_id = data["report_id"]
        assert client.get(f"/api/reports/{report_id}").status_code == 200

        md = client.get(f"/api/reports/{report_id}/export/markdown")
        assert md.status_code == 200
        assert md.text.startswith("# Development Report")
        assert client.get(f"/api/reports/{report_id}/export/pdf").status_code == 400
        assert client.get("/api/reports/missing/export/json").status_code == 404

    def test_analysis_provider_failure(self, client):
        from server import app, get_provider
        from src.engines import AssessmentProviderError

        provider = MagicMock()
        provider.assess.side_effect = AssessmentProviderError("upstream timeout")
        app.dependency_overrides[get_provider] = lambda: provider

        response = client.post("/api/analysis", json={"profile": PROFILE})
        assert response.status_code == 502
        assert "upstream timeout" in response.json()["detail"]


class TestChildMilestones:
    def test_watch_then_achieve(self, client):
        base = "/api/children/child-1/milestones/pincer-grasp"

        response = client.post(f"{base}/watch")
        assert response.json()["state"] == "watched"

        response = client.post(base, json={"notes": "Picked up a pea"})
        assert response.status_code == 200
        assert response.json()["state"] == "achieved"
        assert response.json()["achievement"]["confirmed_by"] == "parent"

        data = client.get("/api/children/child-1/milestones").json()
        assert [a["milestoneId"] for a in data["achievedMilestones"]] == ["pincer-grasp"]
        assert data["watchedMilestones"] == []

    def test_mark_without_body(self, client):
        response = client.post("/api/children/child-1/milestones/first-words")
        assert response.status_code == 200
        assert response.json()["state"] == "achieved"

    def test_watch_achieved_is_ignored(self, client):
        base = "/api/children/child-1/milestones/pincer-grasp"
        client.post(base)

        response = client.post(f"{base}/watch")
        assert response.json()["watched"] is False
        assert response.json()["state"] == "achieved"

    def test_unmark_and_unwatch(self, client):
        base = "/api/children/child-1/milestones/pincer-grasp"
        client.post(base)

        response = client.delete(base)
        assert response.json() == {
            "child_id": "child-1", "milestone_id": "pincer-grasp",
            "state": "not_tracked", "removed": True,
        }

        client.post(f"{base}/watch")
        assert client.delete(f"{base}/watch").json()["state"] == "not_tracked"

    def test_window_for_age(self, client):
        client.post("/api/children/child-2/milestones/pincer-grasp")

        data = client.get("/api/children/child-2/milestones", params={"age_months": 10}).json()
        assert "pincer-grasp" in data["window"]["achieved"]
        assert "bangs-objects" in data["window"]["current"]
        assert data["progress"]["achieved"] == 1
        # Without a remote store every mutation stays pending
        assert data["pending_sync"] == 1

    def test_tracking_handlers_run_off_event_loop(self):
        import inspect

        from fastapi.routing import APIRoute
        from server import app

        handlers = [
            route.endpoint for route in app.routes
            if isinstance(route, APIRoute) and route.path.startswith("/api/children/")
        ]
        assert len(handlers) == 5
        assert not any(inspect.iscoroutinefunction(h) for h in handlers)

    def test_unknown_milestone(self, client):
        assert client.post("/api/children/child-1/milestones/flies-a-kite").status_code == 404


class TestRegistryConfiguration:
    """Which Supabase client backs milestone tracking."""

    @pytest.fixture
    def supabase(self, monkeypatch):
        import server
        from src.db import client as db_client

        create = MagicMock()
        monkeypatch.setattr(db_client, "create_client", create)
        monkeypatch.setattr(server, "_registry", None)
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        db_client.reset_clients()
        yield create
        db_client.reset_clients()

    def test_anon_key_only(self, supabase, monkeypatch):
        from server import app
        from src.db import client as db_client

        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
        db_client.reset_clients()

        response = TestClient(app).post("/api/children/kid/milestones/pincer-grasp/watch")
        assert response.status_code == 200
        assert response.json()["state"] == "watched"
        supabase.assert_called_once_with("https://example.supabase.co", "anon")

    def test_service_key_preferred(self, supabase, monkeypatch):
        from server import get_registry
        from src.db import client as db_client

        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service")
        db_client.reset_clients()

        assert get_registry().remote is not None
        supabase.assert_called_once_with("https://example.supabase.co", "service")

    def test_not_configured(self, supabase, monkeypatch):
        from server import get_registry
        from src.db import client as db_client

        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
        db_client.reset_clients()

        assert get_registry().remote is None
        supabase.assert_not_called()
