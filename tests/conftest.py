# tests/conftest.py
from __future__ import annotations

import os

# Must run before stock_api is imported: the app builds its engine at import time.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DB_CREATE_ALL"] = "1"
os.environ["STATIC_DIR"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from stock_api.core.settings import Settings  # noqa: E402
from stock_api.database import Base, build_engine, build_session_factory  # noqa: E402
from stock_api import models  # noqa: E402,F401


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database per test, independent from the app's engine."""
    eng = build_engine(Settings(DATABASE_URL="sqlite://"))
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(db_engine: Engine) -> Generator[Session, None, None]:
    session = build_session_factory(db_engine)()
    try:
        yield session
    finally:
        session.close()
