"""
API route integration tests using FastAPI TestClient.
Tests the full HTTP request/response cycle over an in-memory store.
Run: pytest tests/test_api_routes.py -v
"""
import json
import pytest
from fastapi.testclient import TestClient

from mockstudio.api.server import create_app
from mockstudio.environments.environment_store import EnvironmentStore
from mockstudio.storage import MemoryStore, StorageWriteError


DEV_PAYLOAD = {
    "name": "Dev",
    "color": "#22c55e",
    "variables": [{"key": "token", "value": "A", "description": "", "enabled": True}],
    "serviceConfig": {"port": 3000},
    "overrides": [
        {"scope": "project", "targetId": 7, "targetName": "Shop",
         "serviceConfig": {"prefix": "/api"},
         "variables": [{"key": "token", "value": "B", "description": "", "enabled": True}]},
        {"scope": "service", "targetId": 42, "targetName": "Orders",
         "serviceConfig": {"port": 4000}},
    ],
}


@pytest.fixture
def store():
    return EnvironmentStore(MemoryStore())


@pytest.fixture
def client(store):
    """TestClient for an app wired to a fresh in-memory store."""
    with TestClient(create_app(store=store), raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def dev_id(client):
    env_id = client.post("/environments", json=DEV_PAYLOAD).json()["id"]
    client.put("/environments/active", json={"id": env_id})
    return env_id


# ══════════════════════════════════════════════════════════════════
# SYSTEM
# ══════════════════════════════════════════════════════════════════


class TestSystemRoutes:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["storage"] == "memory"

    def test_openapi_tags_present(self, client):
        schema = client.get("/openapi.json").json()
        assert schema["info"]["title"] == "Mock Studio"
        tag_names = [t["name"] for t in schema.get("tags", [])]
        assert "Environments" in tag_names
        assert "Resolution" in tag_names

    def test_store_built_from_settings_at_startup(self):
        app = create_app()
        with TestClient(app) as c:
            assert c.get("/health").json()["storage"] == "memory"
        assert isinstance(app.state.environment_store, EnvironmentStore)


# ══════════════════════════════════════════════════════════════════
# ENVIRONMENTS
# ══════════════════════════════════════════════════════════════════


class TestEnvironmentRoutes:

    def test_create_and_list(self, client):
        r = client.post("/environments", json=DEV_PAYLOAD)
        assert r.status_code == 200
        created = r.json()
        assert created["id"] > 0
        assert created["serviceConfig"] == {"port": 3000}
        listing = client.get("/environments").json()
        assert listing["count"] == 1
        assert listing["active_id"] is None
        assert listing["environments"][0]["name"] == "Dev"

    def test_create_requires_name(self, client):
        r = client.post("/environments", json={"variables": []})
        assert r.status_code == 422

    def test_get(self, client, dev_id):
        r = client.get(f"/environments/{dev_id}")
        assert r.status_code == 200
        assert r.json()["overrides"][1]["targetId"] == 42

    def test_get_nonexistent(self, client):
        assert client.get("/environments/1").status_code == 404

    def test_replace(self, client, dev_id):
        created_at = client.get(f"/environments/{dev_id}").json()["createdAt"]
        r = client.put(f"/environments/{dev_id}", json={**DEV_PAYLOAD, "name": "Development"})
        assert r.status_code == 200
        assert r.json()["id"] == dev_id
        assert r.json()["name"] == "Development"
        assert r.json()["createdAt"] == created_at
        assert client.get("/environments").json()["count"] == 1

    def test_delete_active(self, client, dev_id):
        r = client.delete(f"/environments/{dev_id}")
        assert r.json() == {"deleted": True, "env_id": dev_id, "active_id": None}
        assert client.delete(f"/environments/{dev_id}").json()["deleted"] is False
        r = client.post("/resolve/service-config", json={"serviceId": 42, "projectId": 7})
        assert r.json() == {}

    def test_active_selection(self, client, dev_id):
        data = client.get("/environments/active").json()
        assert data["active_id"] == dev_id
        assert data["environment"]["name"] == "Dev"
        data = client.put("/environments/active", json={"id": None}).json()
        assert data == {"active_id": None, "environment": None}

    def test_dangling_active(self, client):
        data = client.put("/environments/active", json={"id": 999}).json()
        assert data == {"active_id": 999, "environment": None}

    def test_orphans(self, client, dev_id):
        r = client.get(f"/environments/{dev_id}/orphans", params={"project_ids": [7], "service_ids": [1]})
        assert r.status_code == 200
        data = r.json()
        assert data["count"] == 1
        assert data["overrides"][0]["targetId"] == 42

    def test_orphans_unknown_env(self, client):
        assert client.get("/environments/5/orphans").status_code == 404


class TestExportImportRoutes:

    def test_export_download(self, client, dev_id):
        r = client.get("/environments/export")
        assert r.status_code == 200
        disposition = r.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="environments-')
        assert disposition.endswith('.json"')
        data = json.loads(r.text)
        assert data[0]["name"] == "Dev"

    def test_import_round_trip(self, client, dev_id):
        exported = client.get("/environments/export").content
        target = TestClient(create_app(store=EnvironmentStore(MemoryStore())))
        r = target.post("/environments/import",
                        files={"file": ("environments.json", exported, "application/json")})
        assert r.status_code == 200
        data = r.json()
        assert data["count"] == 1
        imported = data["environments"][0]
        assert imported["name"] == "Dev"
        assert imported["overrides"] == DEV_PAYLOAD["overrides"]
        assert imported["variables"] == [{"key": "token", "value": "A", "description": "", "enabled": True}]

    def test_import_non_array_rejected(self, client, dev_id):
        r = client.post("/environments/import",
                        files={"file": ("bad.json", b'{"name": "x"}', "application/json")})
        assert r.status_code == 400
        assert "array" in r.json()["detail"]
        assert client.get("/environments").json()["count"] == 1


# ══════════════════════════════════════════════════════════════════
# RESOLUTION
# ══════════════════════════════════════════════════════════════════


class TestResolutionRoutes:

    def test_service_config(self, client, dev_id):
        r = client.post("/resolve/service-config", json={"serviceId": 42, "projectId": 7})
        assert r.json() == {"port": 4000, "prefix": "/api"}
        r = client.post("/resolve/service-config", json={"serviceId": 99, "projectId": 7})
        assert r.json() == {"port": 3000, "prefix": "/api"}

    def test_variables(self, client, dev_id):
        r = client.post("/resolve/variables", json={"text": "{{token}}", "serviceId": 1, "projectId": 7})
        assert r.json() == {"text": "B"}
        r = client.post("/resolve/variables", json={"text": "{{token}}", "serviceId": 1, "projectId": 99})
        assert r.json() == {"text": "A"}

    def test_variables_without_active(self, client):
        r = client.post("/resolve/variables", json={"text": "{{token}} stays"})
        assert r.json() == {"text": "{{token}} stays"}

    def test_request(self, client, dev_id):
        r = client.post("/resolve/request", json={
            "request": {"method": "GET", "url": "/orders?t={{token}}",
                        "headers": {"X-Token": "{{token}}"}, "body": {"t": "{{token}}"}},
            "serviceId": 42, "projectId": 7,
        })
        data = r.json()
        assert data["url"] == "/orders?t=B"
        assert data["headers"] == {"X-Token": "B"}
        assert json.loads(data["body"]) == {"t": "B"}

    def test_launch(self, client, dev_id):
        r = client.post("/resolve/launch", json={
            "serviceId": 42, "projectId": 7,
            "config": {"port": 5000, "realHost": "backend.local", "realPort": "9000"},
        })
        data = r.json()
        assert data["port"] == 4000
        assert data["prefix"] == "/api"
        assert data["realBaseUrl"] == "http://backend.local:9000"
        assert data["environmentId"] == dev_id

    def test_launch_accepts_integer_real_port(self, client):
        r = client.post("/resolve/launch", json={
            "serviceId": 1, "config": {"port": 3000, "realHost": "h", "realPort": 8080},
        })
        assert r.status_code == 200
        assert r.json()["realBaseUrl"] == "http://h:8080"

    def test_launch_defaults(self, client):
        data = client.post("/resolve/launch", json={"serviceId": 1}).json()
        assert data["port"] == 3888


class TestNotificationRoutes:

    def test_write_failures_are_listed(self):
        class FailingStore(MemoryStore):
            def set(self, key, value):
                raise StorageWriteError("disk full")

        with TestClient(create_app(store=EnvironmentStore(FailingStore()))) as c:
            assert c.post("/environments", json={"name": "Dev"}).status_code == 200
            data = c.get("/notifications").json()
            assert data["count"] == 1
            assert data["notifications"][0]["message"] == "disk full"
            assert c.delete("/notifications").json() == {"cleared": 1}
            assert c.get("/notifications").json()["count"] == 0
