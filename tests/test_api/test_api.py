"""
HTTP-level tests: auth gates, error shape and the main admin flows.
The lifespan does not run under ASGITransport, so app.state is wired here.
"""

import httpx
import pytest

from shelflife.clients.registry import ServiceClients
from shelflife.config import settings
from shelflife.deletion.orchestrator import DeletionOrchestrator
from shelflife.dependencies import get_db
from shelflife.main import create_app
from shelflife.sync.dispatch import SyncDispatcher
from shelflife.sync.scheduler import SyncScheduler

API_KEY = "test-api-key"

ADMIN = {"X-Plex-Id": "admin"}
ALICE = {"X-Plex-Id": "alice"}
BOB = {"X-Plex-Id": "bob"}


@pytest.fixture
async def client(session_factory, make_user, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", API_KEY)
    monkeypatch.setattr(settings, "DEBUG", False)
    app = create_app()

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    clients = ServiceClients()
    app.state.clients = clients
    app.state.orchestrator = DeletionOrchestrator(session_factory, clients)
    app.state.dispatcher = SyncDispatcher(session_factory, clients)
    app.state.scheduler = SyncScheduler(app.state.dispatcher, session_factory)

    await make_user("admin", is_admin=True)
    await make_user("alice")
    await make_user("bob")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", headers={"X-API-Key": API_KEY}
    ) as http:
        yield http

    await app.state.scheduler.stop()


class TestAuth:

    async def test_health_is_open(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"] == {"overseerr": False, "radarr": False, "sonarr": False, "tautulli": False}
        assert body["sync_in_progress"] is False

        response = await client.get("/health/ready")
        assert response.json() == {"ready": True}

    async def test_missing_plex_id_is_401(self, client):
        response = await client.get("/api/v1/community")
        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated", "error_code": "ERR_NOT_AUTHENTICATED"}

    async def test_unknown_plex_id_is_401(self, client):
        response = await client.get("/api/v1/community", headers={"X-Plex-Id": "ghost"})
        assert response.status_code == 401

    async def test_wrong_api_key_is_401(self, client):
        response = await client.get("/api/v1/community", headers={**ALICE, "X-API-Key": "nope"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "ERR_HTTP_401"

    async def test_forwarded_identity_refused_without_api_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", None)

        response = await client.post("/api/v1/admin/review-rounds", json={"name": "Hijack"}, headers=ADMIN)
        assert response.status_code == 401
        assert response.json()["error_code"] == "ERR_NOT_AUTHENTICATED"

    async def test_debug_accepts_forwarded_identity_without_api_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", None)
        monkeypatch.setattr(settings, "DEBUG", True)

        response = await client.get("/api/v1/admin/review-rounds", headers=ADMIN)
        assert response.status_code == 200

    async def test_non_admin_is_403(self, client):
        response = await client.get("/api/v1/admin/review-rounds", headers=ALICE)
        assert response.status_code == 403
        assert response.json()["error_code"] == "ERR_FORBIDDEN"


class TestVotingFlow:

    async def test_nominate_then_community_keep(self, client, make_item):
        item = await make_item(title="Show", media_type="tv", season_count=4, requested_by_plex_id="alice")

        response = await client.post(
            f"/api/v1/media/{item.id}/vote", json={"vote": "trim", "keep_seasons": 2}, headers=ALICE
        )
        assert response.status_code == 200
        assert response.json()["keep_seasons"] == 2

        listing = (await client.get("/api/v1/community", headers=BOB)).json()
        assert [i["id"] for i in listing["items"]] == [item.id]
        assert listing["items"][0]["nomination_type"] == "trim"
        assert listing["pagination"]["total"] == 1

        response = await client.post(f"/api/v1/community/{item.id}/vote", headers=BOB)
        assert response.status_code == 200
        assert response.json()["vote"] == "keep"

        response = await client.post(f"/api/v1/community/{item.id}/vote", headers=ALICE)
        assert response.status_code == 404

    async def test_invalid_trim_is_400(self, client, make_item):
        item = await make_item(media_type="tv", season_count=5, requested_by_plex_id="alice")

        response = await client.post(
            f"/api/v1/media/{item.id}/vote", json={"vote": "trim", "keep_seasons": 5}, headers=ALICE
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "ERR_VALIDATION"

    async def test_bad_body_is_400(self, client, make_item):
        item = await make_item(requested_by_plex_id="alice")

        response = await client.post(f"/api/v1/media/{item.id}/vote", json={"vote": "maybe"}, headers=ALICE)
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "ERR_VALIDATION"
        assert body["error"].startswith("vote")

    async def test_review_status_without_round(self, client):
        response = await client.get("/api/v1/media/review-status", headers=ALICE)
        assert response.json() == {"active_round": None, "status": None}


class TestRoundFlow:

    async def test_create_conflict_and_delete(self, client, make_item):
        item = await make_item(title="Movie", tmdb_id=603, requested_by_plex_id="alice")

        response = await client.post("/api/v1/admin/review-rounds", json={"name": "January"}, headers=ADMIN)
        assert response.status_code == 201
        round_id = response.json()["id"]

        response = await client.post("/api/v1/admin/review-rounds", json={"name": "Again"}, headers=ADMIN)
        assert response.status_code == 409
        assert response.json()["error_code"] == "ERR_ROUND_ACTIVE"

        delete_url = f"/api/v1/admin/review-rounds/{round_id}/delete"
        response = await client.post(delete_url, json={"media_item_id": item.id}, headers=ADMIN)
        assert response.status_code == 400

        response = await client.post(
            f"/api/v1/admin/review-rounds/{round_id}/action",
            json={"media_item_id": item.id, "action": "remove"},
            headers=ADMIN,
        )
        assert response.status_code == 200

        response = await client.post(delete_url, json={"media_item_id": item.id}, headers=ADMIN)
        assert response.status_code == 200
        result = response.json()
        assert result["media_item_id"] == item.id
        assert result["radarr"] == {"attempted": False, "success": None, "error": None}

        response = await client.post(delete_url, json={"media_item_id": item.id}, headers=ADMIN)
        assert response.status_code == 409
        assert response.json()["error_code"] == "ERR_ALREADY_REMOVED"

    async def test_empty_name_is_400(self, client):
        response = await client.post("/api/v1/admin/review-rounds", json={"name": ""}, headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["error"].startswith("name")

    async def test_close_twice_is_404(self, client):
        round_id = (
            await client.post("/api/v1/admin/review-rounds", json={"name": "R"}, headers=ADMIN)
        ).json()["id"]

        first = await client.post(f"/api/v1/admin/review-rounds/{round_id}/close", headers=ADMIN)
        assert first.status_code == 200
        assert first.json()["status"] == "closed"

        second = await client.post(f"/api/v1/admin/review-rounds/{round_id}/close", headers=ADMIN)
        assert second.status_code == 404


class TestAdminServices:

    async def test_service_status(self, client):
        response = await client.get("/api/v1/admin/services/status", headers=ADMIN)
        assert response.json() == {"sonarr": False, "radarr": False, "overseerr": False}

    async def test_sync_schedule_round_trip(self, client):
        response = await client.get("/api/v1/admin/settings/sync-schedule", headers=ADMIN)
        assert response.json()["enabled"] is False

        response = await client.put(
            "/api/v1/admin/settings/sync-schedule",
            json={"enabled": True, "interval_minutes": 15, "sync_type": "overseerr"},
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert response.json()["interval_minutes"] == 15

        response = await client.put(
            "/api/v1/admin/settings/sync-schedule",
            json={"enabled": True, "interval_minutes": 1},
            headers=ADMIN,
        )
        assert response.status_code == 400

    async def test_sync_status_idle(self, client):
        response = await client.get("/api/v1/sync/status", headers=ADMIN)
        assert response.json() == {"in_progress": False, "last_sync": None}


class TestOpenApi:

    async def test_error_shape_documented(self, client):
        schema = (await client.get("/openapi.json")).json()
        assert set(schema["components"]["schemas"]["ErrorResponse"]["required"]) == {"error", "error_code"}

        conflict = schema["paths"]["/api/v1/admin/review-rounds"]["post"]["responses"]["409"]
        assert conflict["content"]["application/json"]["schema"]["$ref"] == "#/components/schemas/ErrorResponse"
        assert "409" not in schema["paths"]["/health"]["get"]["responses"]
