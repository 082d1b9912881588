"""
HTTP tests for the decision preview API.
"""
import pytest
from fastapi.testclient import TestClient

from party_ai.main import app

API = "/api/party-ai"

SLASH = {
    "id": "slash", "name": "Slash", "can_target_enemies": True,
    "attack_type": "melee", "range": 2.0,
}
MEDIKIT = {"id": "medikit", "name": "Medikit", "can_target_self": True, "can_target_allies": True}
FOCUS = {"id": "focus", "name": "Concentrated Fire", "can_target_self": True}
DISPATCH = {"id": "dispatch", "name": "Dispatch", "can_target_enemies": True}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def situation():
    """Hero next to a goblin with a blade and a medikit."""
    return {
        "unit": {"id": "hero", "name": "Hero", "hp": 100, "max_hp": 100},
        "enemies": [{"id": "goblin", "name": "Goblin", "hp": 100, "max_hp": 100, "position": [1.0, 0.0]}],
        "abilities": [SLASH, MEDIKIT],
        "current_ap": 3,
    }


pytestmark = pytest.mark.api


class TestService:
    """Tests for the service-level endpoints."""

    def test_root(self, client):
        data = client.get("/").json()
        assert data["status"] == "online"
        assert data["service"] == "Party AI"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestDecide:
    """Tests for POST /decide."""

    def test_emergency_heal(self, client, situation):
        situation["unit"]["hp"] = 25

        response = client.post(f"{API}/decide", json=situation)

        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "balanced"
        assert data["policy"] == "Balanced"
        assert data["decision"]["type"] == "use_ability"
        assert data["decision"]["ability_id"] == "medikit"
        assert data["decision"]["target_id"] == "hero"

    def test_attack(self, client, situation):
        data = client.post(f"{API}/decide", json=situation).json()

        assert data["decision"]["ability_id"] == "slash"
        assert data["decision"]["target_id"] == "goblin"
        assert data["decision"]["reason"] == "Attack Goblin"
        assert data["turn_plan"] is None

    def test_explicit_settings(self, client, situation):
        situation["enemies"][0]["hp"] = 20
        situation["abilities"] = [SLASH, DISPATCH]
        situation["settings"] = {"role": "dps", "heal_threshold": 45}

        data = client.post(f"{API}/decide", json=situation).json()

        assert data["policy"] == "DPS"
        assert data["decision"]["reason"] == "Finish Goblin"

    def test_registered_preset_used(self, client, situation):
        assert client.post(f"{API}/settings/hero/preset", json={"role": "tank"}).status_code == 200

        data = client.post(f"{API}/decide", json=situation).json()

        assert data["role"] == "tank"
        assert data["policy"] == "Tank"

    def test_plan_attached(self, client, situation):
        situation["abilities"] = [SLASH, FOCUS]
        situation["plan"] = True

        data = client.post(f"{API}/decide", json=situation).json()

        assert data["turn_plan"]["should_buff_first"] is True
        assert data["decision"]["ability_id"] == "focus"

    def test_denied_everywhere(self, client, situation):
        situation["abilities"] = [SLASH]
        situation["host"] = {"denied": [{"ability_id": "slash", "reason": "Disarmed"}]}

        data = client.post(f"{API}/decide", json=situation).json()

        assert data["decision"]["type"] == "move"

    def test_no_enemies(self, client, situation):
        situation["enemies"] = []

        data = client.post(f"{API}/decide", json=situation).json()

        assert data["decision"]["type"] == "end_turn"
        assert data["decision"]["reason"] == "No enemies remaining"


class TestDecideErrors:
    """Tests for request errors on POST /decide."""

    def test_duplicate_ids(self, client, situation):
        situation["allies"] = [{"id": "goblin", "hp": 10}]

        response = client.post(f"{API}/decide", json=situation)

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["errors"] == ["goblin"]
        assert "error_id" in error

    def test_unknown_denial_target(self, client, situation):
        situation["host"] = {"denied": [{"ability_id": "slash", "target_id": "ghost"}]}

        response = client.post(f"{API}/decide", json=situation)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNIT_NOT_FOUND"

    def test_missing_unit(self, client):
        response = client.post(f"{API}/decide", json={"current_ap": 3})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["message"] == "Request validation failed"
        assert any("unit" in e["field"] for e in error["details"]["errors"])

    def test_bad_position(self, client, situation):
        situation["enemies"][0]["position"] = [1.0]
        assert client.post(f"{API}/decide", json=situation).status_code == 422

    def test_bad_role(self, client, situation):
        situation["settings"] = {"role": "bard"}
        assert client.post(f"{API}/decide", json=situation).status_code == 422

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nothing-here")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestPlanAndClassify:
    """Tests for the plan and classify endpoints."""

    def test_plan(self, client, situation):
        situation["abilities"] = [SLASH, FOCUS]

        response = client.post(f"{API}/plan", json=situation)

        assert response.status_code == 200
        plan = response.json()["turn_plan"]
        assert plan["should_buff_first"] is True
        assert plan["reason"] == "Buff Concentrated Fire then 2 attack(s)"

    def test_classify(self, client):
        response = client.post(f"{API}/classify", json={"abilities": [MEDIKIT, DISPATCH, SLASH]})

        assert response.status_code == 200
        medikit, dispatch, slash = response.json()["abilities"]
        assert medikit["timing"] == "heal"
        assert medikit["traits"]["healing"] is True
        assert dispatch["timing"] == "finisher"
        assert dispatch["target_hp_threshold"] == 30
        assert slash["timing"] == "none"
        assert slash["traits"]["offensive"] is True


class TestSettingsEndpoints:
    """Tests for roles, presets and encounter reset."""

    def test_roles(self, client):
        roles = client.get(f"{API}/roles").json()["roles"]

        assert len(roles) == 6
        tank = next(r for r in roles if r["role"] == "tank")
        assert tank["policy"] == "Tank"
        assert tank["preset"]["range_preference"] == "prefer_melee"

    def test_default_settings(self, client):
        data = client.get(f"{API}/settings/nobody").json()
        assert data["settings"]["role"] == "balanced"

    def test_assign_preset(self, client):
        response = client.post(f"{API}/settings/hero/preset", json={"role": "Sniper"})

        assert response.status_code == 200
        assert response.json()["settings"]["role"] == "sniper"
        assert client.get(f"{API}/settings/hero").json()["settings"]["min_safe_distance"] == 8.0

    def test_invalid_preset(self, client):
        response = client.post(f"{API}/settings/hero/preset", json={"role": "bard"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SETTINGS_INVALID"

    def test_reset_encounter(self, client):
        assert client.post(f"{API}/encounter/reset").json() == {"status": "reset"}


class TestErrorHandlers:
    """Tests for the unhandled-exception envelope."""

    def _app(self, debug):
        from fastapi import FastAPI
        from party_ai.middleware.error_handler import setup_error_handlers

        broken = FastAPI()
        setup_error_handlers(broken, debug=debug)

        @broken.get("/boom")
        async def boom():
            raise RuntimeError("kaput")

        return TestClient(broken, raise_server_exceptions=False)

    def test_unhandled_hides_details(self):
        response = self._app(debug=False).get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "UNKNOWN"
        assert error["recoverable"] is False
        assert "debug" not in error

    def test_debug_includes_traceback(self):
        error = self._app(debug=True).get("/boom").json()["error"]

        assert error["debug"]["exception_type"] == "RuntimeError"
        assert error["debug"]["traceback"]
