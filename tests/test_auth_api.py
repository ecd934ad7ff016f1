"""Tests for the HTTP adapter around the token core."""

from unittest.mock import MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from tokenauth.core.errors import ConfigurationError
from tokenauth.core.ratelimit import RedisCounterStore
from tokenauth.main import create_app

from conftest import PASSWORD, make_settings

TOKEN_URL = "/api/v1/auth/token"
REFRESH_URL = "/api/v1/auth/refresh"


def _login(client, username="bob", password=PASSWORD):
    return client.post(TOKEN_URL, json={"username": username, "password": password})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_login_returns_token_pair(client, api_subject):
    response = _login(client)

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert data["subject"] == {"id": api_subject.external_id, "username": "bob"}


def test_login_is_case_insensitive_on_username(client, api_subject):
    assert _login(client, username="  BOB ").status_code == 200


@pytest.mark.parametrize("username,password", [("bob", "wrong-password"), ("nobody", PASSWORD)])
def test_bad_credentials_share_one_answer(client, api_subject, username, password):
    response = _login(client, username=username, password=password)

    assert response.status_code == 401
    assert response.json() == {"code": "AUTHENTICATION_FAILED", "message": "Invalid credentials"}


def test_login_is_rate_limited(client, api_subject, clock):
    for _ in range(5):
        assert _login(client, password="wrong-password").status_code == 401

    response = _login(client)

    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.headers["Retry-After"] == "900"

    clock.advance(minutes=15)
    assert _login(client).status_code == 200


def test_refresh_rotates_and_rejects_replay(client, api_subject):
    r1 = _login(client).json()["refresh_token"]

    rotated = client.post(REFRESH_URL, json={"refresh_token": r1})
    assert rotated.status_code == 200
    r2 = rotated.json()["refresh_token"]
    assert r2 != r1

    replay = client.post(REFRESH_URL, json={"refresh_token": r1})
    assert replay.status_code == 401
    assert replay.json() == {"code": "INVALID_REFRESH_TOKEN", "message": "Invalid or expired refresh token"}

    assert client.post(REFRESH_URL, json={"refresh_token": r2}).status_code == 200


def test_logout_revokes_refresh_token(client, api_subject):
    refresh_token = _login(client).json()["refresh_token"]

    assert client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token}).json() == {"ok": True}
    assert client.post("/api/v1/auth/logout", json={"refresh_token": "unknown"}).json() == {"ok": True}
    assert client.post(REFRESH_URL, json={"refresh_token": refresh_token}).status_code == 401


def test_logout_all_revokes_every_session(client, api_subject):
    first = _login(client).json()
    second = _login(client).json()

    response = client.post("/api/v1/auth/logout-all", headers=_bearer(first["access_token"]))

    assert response.status_code == 200
    assert response.json() == {"revoked": 2}
    for pair in (first, second):
        assert client.post(REFRESH_URL, json={"refresh_token": pair["refresh_token"]}).status_code == 401


def test_verify_renews_only_after_threshold(client, api_subject, clock):
    token = _login(client).json()["access_token"]

    same = client.get("/api/v1/auth/verify", headers=_bearer(token))
    assert same.status_code == 200
    assert same.json() == {"token": token}
    assert "X-Access-Token" not in same.headers

    clock.advance(minutes=30)
    renewed = client.get("/api/v1/auth/verify", headers=_bearer(token))
    assert renewed.status_code == 200
    assert renewed.json()["token"] != token
    assert renewed.headers["X-Access-Token"] == renewed.json()["token"]


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer not.a.jwt"}])
def test_verify_rejects_missing_or_invalid_token(client, headers):
    response = client.get("/api/v1/auth/verify", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_and_invalid_look_the_same(client, api_subject, clock):
    token = _login(client).json()["access_token"]
    clock.advance(hours=2)

    expired = client.get("/api/v1/auth/verify", headers=_bearer(token))
    invalid = client.get("/api/v1/auth/verify", headers=_bearer(token + "x"))

    assert expired.status_code == invalid.status_code == 401
    assert expired.json() == invalid.json()


def test_startup_refuses_weak_secret(clock):
    app = create_app(make_settings(SECRET_KEY="weak"), clock=clock)

    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


@pytest.fixture
def tight_client(clock):
    settings = make_settings(LOGOUT_MAX_ATTEMPTS=2, LOGOUT_ALL_MAX_ATTEMPTS=2, VERIFY_MAX_ATTEMPTS=2)
    with TestClient(create_app(settings, clock=clock)) as c:
        yield c


def _assert_rate_limited(response):
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.headers["Retry-After"] == "900"


def test_logout_is_rate_limited(tight_client):
    for attempt in range(2):
        response = tight_client.post("/api/v1/auth/logout", json={"refresh_token": f"guess-{attempt}"})
        assert response.status_code == 200

    _assert_rate_limited(tight_client.post("/api/v1/auth/logout", json={"refresh_token": "guess-2"}))


def test_logout_all_is_rate_limited(tight_client):
    for _ in range(2):
        assert tight_client.post("/api/v1/auth/logout-all", headers=_bearer("not.a.jwt")).status_code == 401

    _assert_rate_limited(tight_client.post("/api/v1/auth/logout-all", headers=_bearer("not.a.jwt")))


def test_verify_is_rate_limited_before_the_token_is_read(tight_client, clock):
    for _ in range(2):
        assert tight_client.get("/api/v1/auth/verify", headers=_bearer("not.a.jwt")).status_code == 401

    # sem header algum: o limitador responde antes do Bearer
    _assert_rate_limited(tight_client.get("/api/v1/auth/verify"))

    clock.advance(minutes=15)
    assert tight_client.get("/api/v1/auth/verify").status_code == 401


def test_actions_are_limited_independently(tight_client):
    for _ in range(3):
        tight_client.post("/api/v1/auth/logout", json={"refresh_token": "guess"})

    assert tight_client.get("/api/v1/auth/verify").status_code == 401


def test_redis_counter_store_is_used_and_closed(clock, monkeypatch):
    redis_client = MagicMock(wraps=fakeredis.FakeRedis(decode_responses=True))
    monkeypatch.setattr(RedisCounterStore, "from_url", lambda url: RedisCounterStore(redis_client))
    app = create_app(make_settings(REDIS_URL="redis://cache:6379/0", LOGOUT_MAX_ATTEMPTS=1), clock=clock)

    with TestClient(app) as client:
        assert client.post("/api/v1/auth/logout", json={"refresh_token": "a"}).status_code == 200
        assert client.post("/api/v1/auth/logout", json={"refresh_token": "b"}).status_code == 429
        redis_client.close.assert_not_called()

    redis_client.close.assert_called_once()


def test_error_body_is_documented(client):
    schema = client.get("/openapi.json").json()

    assert set(schema["components"]["schemas"]["ErrorOut"]["properties"]) == {"code", "message"}
    for path in ("/api/v1/auth/token", "/api/v1/auth/refresh", "/api/v1/auth/logout-all"):
        responses = schema["paths"][path]["post"]["responses"]
        assert responses["429"]["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/ErrorOut"}
    assert "429" in schema["paths"]["/api/v1/auth/logout"]["post"]["responses"]
    assert "401" in schema["paths"]["/api/v1/auth/verify"]["get"]["responses"]
