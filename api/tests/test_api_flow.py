import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

import app.main as m
from app.deps import get_db
from app.routes import matching as matching_routes

from conftest import InMemoryProfileStore


class _DummySession:
    def __init__(self):
        self.statements = []
        self.commits = 0

    def execute(self, stmt, params=None):
        self.statements.append((str(stmt), params))

    def commit(self):
        self.commits += 1

    def rollback(self):
        return None


@pytest.fixture
def session():
    return _DummySession()


@pytest.fixture
def client(monkeypatch, session, profile_store, match_store):
    monkeypatch.setattr(m, "wait_for_db", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "init_schema", lambda: None)
    monkeypatch.setattr(matching_routes, "ADMIN_TOKEN", "secret")
    monkeypatch.setattr(matching_routes, "stores_for", lambda db: (profile_store, match_store))

    def _override_db():
        yield session

    m.app.dependency_overrides[get_db] = _override_db
    yield TestClient(m.app)
    m.app.dependency_overrides.pop(get_db, None)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "module": "matching"}


def test_run_matching_action_requires_admin_token(client, match_store):
    res = client.post("/matching", json={"action": "run_matching"})
    assert res.status_code == 401
    assert match_store.records == []

    res = client.post("/matching", json={"action": "run_matching"}, headers={"X-Admin-Token": "wrong"})
    assert res.status_code == 401


def test_run_matching_action_creates_pairs_and_logs_event(client, session, match_store):
    res = client.post("/matching", json={"action": "run_matching"}, headers={"X-Admin-Token": "secret"})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "Created 2 stable matches"
    assert body["created_count"] == 2
    assert body["pool_size"] == 6
    assert body["matches"][0] == {"user1_id": "ana", "user2_id": "ben", "compatibility_score": 70, "algorithm_matched": True}
    assert len(match_store.records) == 4

    assert any("INSERT INTO matching_run_event" in sql for sql, _ in session.statements)
    assert session.commits == 1

    again = client.post("/matching/run", headers={"X-Admin-Token": "secret"})
    assert again.status_code == 200
    assert again.json()["created_count"] == 0
    assert again.json()["skipped_existing"] == 2


def test_run_matching_with_insufficient_pool_succeeds(client, monkeypatch, match_store):
    monkeypatch.setattr(matching_routes, "stores_for", lambda db: (InMemoryProfileStore([]), match_store))
    res = client.post("/matching/run", headers={"X-Admin-Token": "secret"})
    assert res.status_code == 200
    assert res.json()["message"] == "Not enough users for matching"
    assert res.json()["matches"] == []


def test_upstream_failure_maps_to_503(client, monkeypatch, campus_rows, match_store):
    monkeypatch.setattr(matching_routes, "stores_for", lambda db: (InMemoryProfileStore(campus_rows, fail=True), match_store))
    res = client.post("/matching/run", headers={"X-Admin-Token": "secret"})
    assert res.status_code == 503
    assert res.json() == {"success": False, "error": "Failed to fetch profiles"}


def test_get_user_matches_via_action_and_route(client):
    client.post("/matching/run", headers={"X-Admin-Token": "secret"})

    res = client.post("/matching", json={"action": "get_user_matches", "userId": "cara"})
    assert res.status_code == 200
    matches = res.json()["matches"]
    assert len(matches) == 1
    assert matches[0]["liked_user_id"] == "dev"
    assert matches[0]["compatibility_score"] == 60
    assert matches[0]["matched_profile"]["full_name"] == "User dev"

    res = client.get("/users/eli/matches")
    assert res.status_code == 200
    assert res.json() == {"success": True, "matches": []}


def test_get_compatibility_via_action_and_route(client):
    res = client.post("/matching", json={"action": "get_compatibility", "userId": "ana", "otherUserId": "ben"})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["compatibility_score"] == 70
    assert body["score_breakdown"]["department_points"] == 20

    res = client.get("/compatibility/ben/ana")
    assert res.status_code == 200
    assert res.json()["compatibility_score"] == 70


def test_bad_requests(client):
    res = client.post("/matching", json={"action": "launch_rockets"})
    assert res.status_code == 400
    assert res.json()["success"] is False

    res = client.post("/matching", json={"action": "get_user_matches"})
    assert res.status_code == 400
    assert res.json()["error"] == "userId is required"

    res = client.get("/compatibility/ana/zed")
    assert res.status_code == 404
    assert res.json()["success"] is False
