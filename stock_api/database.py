# stock_api/database.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_api.core.logging import mask_url
from stock_api.core.settings import Settings, settings

logger = logging.getLogger(__name__)

_SQLITE_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:", "sqlite+pysqlite://", "sqlite+pysqlite:///:memory:"}

# -----------------------------
# Naming convention for constraints/indexes
# -----------------------------
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)
Base = declarative_base(metadata=metadata)


# -----------------------------
# Engine factory
# -----------------------------
def _build_engine_kwargs(cfg: Settings) -> dict:
    url = cfg.DATABASE_URL
    kwargs: dict = {
        "echo": cfg.DB_ECHO,
        "pool_pre_ping": not cfg.DB_DISABLE_PRE_PING,
    }

    if url.startswith("sqlite"):
        # the sqlite3 driver refuses connections shared across threads by default
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in _SQLITE_MEMORY_URLS:
            # every new connection would otherwise see its own empty database
            kwargs["poolclass"] = StaticPool
            return kwargs

    # Bounded pool for servers and file SQLite: max_overflow=0 caps it at pool_size;
    # callers beyond that wait up to pool_timeout seconds for a free connection.
    kwargs.update(
        {
            "pool_size": cfg.DB_POOL_SIZE,
            "max_overflow": cfg.DB_MAX_OVERFLOW,
            "pool_timeout": cfg.DB_POOL_TIMEOUT,
            "pool_recycle": cfg.DB_POOL_RECYCLE,
            "pool_use_lifo": True,
        }
    )
    return kwargs


def build_engine(cfg: Settings) -> Engine:
    """Create the engine (and its connection pool) described by ``cfg``."""
    eng = create_engine(cfg.DATABASE_URL, **_build_engine_kwargs(cfg))
    logger.info(
        "DB engine ready (url=%s, pool=%s)",
        mask_url(cfg.DATABASE_URL),
        type(eng.pool).__name__,
    )
    return eng


def build_session_factory(bind: Engine) -> sessionmaker:
    # expire_on_commit=False keeps loaded rows usable after commit
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine: Engine = build_engine(settings)
SessionLocal = build_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency: one session per request, always closed.
    Rolls back if the handler raises, so the connection goes back to the pool clean.
    """
    db: Session = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for code outside FastAPI (startup checks, scripts).
        with session_scope() as db:
            crud.create(db, "Parafusos", 40)
    """
    db: Session = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db_if_requested(bind: Engine | None = None) -> bool:
    """
    Create the tables from the models when DB_CREATE_ALL=1.
    Meant for dev/CI; in production the table is provisioned outside the app.
    """
    if not settings.DB_CREATE_ALL:
        return False
    from stock_api import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
    return True


__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "build_engine",
    "build_session_factory",
    "get_db",
    "session_scope",
    "init_db_if_requested",
]
