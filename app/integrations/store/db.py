"""
SQLAlchemy engine and session helpers for the persistence store.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings


def _ensure_sqlite_parent_dir(db_url: str) -> None:
    # sqlite:///relative/path.db or sqlite:////abs/path.db
    if not db_url.startswith("sqlite:"):
        return
    if db_url.startswith("sqlite:////"):
        path = db_url.replace("sqlite:////", "/", 1)
    elif db_url.startswith("sqlite:///"):
        path = db_url.replace("sqlite:///", "", 1)
    else:
        # sqlite:// is an in-memory database
        return
    if path in (":memory:", ""):
        return
    Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def _is_sqlite_memory(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:")


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    url = db_url or get_settings().database_url
    _ensure_sqlite_parent_dir(url)
    kwargs = {}
    if url.startswith("sqlite:"):
        # Pipeline calls run in worker threads
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_sqlite_memory(url):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, future=True, pool_pre_ping=True, **kwargs)


class SessionProvider:
    """Light wrapper to create SQLAlchemy sessions for one engine."""

    def __init__(self, db_url: Optional[str] = None, engine: Optional[Engine] = None):
        self.engine = engine or create_db_engine(db_url)
        self._factory = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, future=True
        )

    def session(self) -> Session:
        return self._factory()
