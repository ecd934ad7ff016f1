# tokenauth/db/init_db.py
import os

from sqlalchemy.engine import Engine

from tokenauth.db.base import Base
import tokenauth.models  # noqa: F401  registra todas as tabelas no metadata


def init_db(engine: Engine) -> None:
    if engine.url.get_backend_name() == "sqlite" and engine.url.database not in (None, "", ":memory:"):
        os.makedirs(os.path.dirname(os.path.abspath(engine.url.database)), exist_ok=True)
    Base.metadata.create_all(bind=engine)
