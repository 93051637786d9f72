import pytest

pytest.importorskip("httpx", reason="httpx requis pour les tests client FastAPI")

from fastapi.testclient import TestClient

from conftest import auth_headers
from murder_game.deps.auth import HOST_COOKIE_NAME, HostSessionRegistry
from murder_game.main import create_app


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


def test_host_page_redirects_when_anonymous(client, settings):
    response = client.get("/host", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == settings.LOGIN_PATH


def test_host_page_with_bearer(client):
    response = client.get("/host", headers=auth_headers())
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["gameState"]["exists"] is False
    assert data["playerLinks"] == {}


def test_wrong_bearer_is_forbidden(client):
    response = client.post(
        "/game/vote/reset",
        params={"gameCode": "X"},
        headers={"Authorization": "Bearer nope"},
    )
    assert response.status_code == 403


def test_login_sets_cookie_and_grants_access(client):
    bad = client.post("/auth/host/login", json={"username": "host", "password": "wrong"})
    assert bad.status_code == 401

    ok = client.post("/auth/host/login", json={"username": "host", "password": "secret"})
    assert ok.status_code == 200
    assert ok.json()["ok"] is True
    assert HOST_COOKIE_NAME in ok.cookies

    client.post("/game/start", json={"playerNames": ["Alice", "Bob", "Carol"], "gameCode": "XMAS"})
    dashboard = client.get("/host", params={"gameCode": "XMAS"})
    assert dashboard.status_code == 200
    state = dashboard.json()["gameState"]
    assert state["viewer"] == "host"
    assert len(dashboard.json()["playerLinks"]) == 3

    client.post("/auth/host/logout")
    client.cookies.clear()
    assert client.get("/host", follow_redirects=False).status_code == 303


def test_host_session_registry_expiry():
    registry = HostSessionRegistry(ttl_seconds=-1)
    sid = registry.create()
    assert registry.is_valid(sid) is False
    assert registry.is_valid(None) is False

    live = HostSessionRegistry(ttl_seconds=60)
    sid = live.create()
    assert live.is_valid(sid) is True
    live.delete(sid)
    assert live.is_valid(sid) is False


def test_anonymous_host_page_lands_on_login_form(client, settings):
    response = client.get("/host")
    assert response.status_code == 200
    assert response.url.path == settings.LOGIN_PATH
    login = response.json()["login"]
    assert login["method"] == "POST"
    assert login["action"] == settings.LOGIN_PATH
    assert login["fields"] == ["username", "password"]
