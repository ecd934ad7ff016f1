# tokenauth/db/session.py
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

DEFAULT_DATABASE_URL = "sqlite:///./data/tokenauth.db"
IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

# URLs de Heroku/Render chegam sem driver; forçamos o psycopg 3
_DRIVER_PREFIXES = {
    "postgres://": "postgresql+psycopg://",
    "postgresql://": "postgresql+psycopg://",
}


def normalize_database_url(url: Optional[str]) -> str:
    url = (url or "").strip() or DEFAULT_DATABASE_URL
    for prefix, replacement in _DRIVER_PREFIXES.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def make_engine(database_url: Optional[str]) -> Engine:
    url = normalize_database_url(database_url)
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in IN_MEMORY_URLS:
        # uma única conexão compartilhada, senão cada sessão vê um banco vazio
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    # SQLite só aplica ON DELETE CASCADE com foreign_keys ligado
    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    db = factory()
    try:
        yield db
    finally:
        db.close()
