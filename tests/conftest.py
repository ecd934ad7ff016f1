# tests/conftest.py
import os
from datetime import datetime, timedelta, timezone

# tokenauth.main monta um app no import; sem métricas globais nos testes
os.environ.setdefault("METRICS_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from tokenauth.core.config import Settings
from tokenauth.crud.subject import subject_crud
from tokenauth.db.init_db import init_db
from tokenauth.db.session import make_engine, make_session_factory

SECRET = "test-secret-0123456789-abcdefghijklmnop"
PASSWORD = "correct horse battery staple"


class FrozenClock:
    """Controllable wall clock injected into every component under test."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite://",
        SECRET_KEY=SECRET,
        ALGORITHM="HS256",
        ISSUER="tokenauth-tests",
        ACCESS_TOKEN_EXPIRE_MINUTES=60,
        RENEW_THRESHOLD_MINUTES=10,
        REFRESH_TOKEN_EXPIRE_DAYS=30,
        MAX_ACTIVE_REFRESH_TOKENS=0,
        LOGIN_MAX_ATTEMPTS=5,
        LOGIN_WINDOW_SECONDS=900,
        REFRESH_MAX_ATTEMPTS=30,
        REFRESH_WINDOW_SECONDS=900,
        LOGOUT_MAX_ATTEMPTS=30,
        LOGOUT_WINDOW_SECONDS=900,
        LOGOUT_ALL_MAX_ATTEMPTS=10,
        LOGOUT_ALL_WINDOW_SECONDS=900,
        VERIFY_MAX_ATTEMPTS=300,
        VERIFY_WINDOW_SECONDS=900,
        REDIS_URL="",
        REFRESH_CLEANUP_INTERVAL_SECONDS=0,
        METRICS_ENABLED=False,
        LOG_LEVEL="WARNING",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def subject(db):
    return subject_crud.create(db, username="alice", password=PASSWORD)


@pytest.fixture
def app(settings, clock):
    from tokenauth.main import create_app

    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    # 'with' executa o lifespan: valida o segredo e cria as tabelas
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_subject(app, client):
    with app.state.session_factory() as session:
        created = subject_crud.create(session, username="bob", password=PASSWORD)
        session.expunge(created)
    return created
