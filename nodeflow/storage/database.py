"""Database engine and session management."""

import threading
from typing import Dict, Optional
from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for all database models
Base = declarative_base()


def normalize_database_url(database_url: str) -> str:
    """Accept the ``postgres://`` spelling used by many connection strings."""
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://"):]
    return database_url


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite engines share one connection across threads."""
    database_url = normalize_database_url(database_url)
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )
    return create_engine(database_url, echo=echo)


class EngineCache:
    """One engine per database URL, created on first use."""

    def __init__(self, echo: bool = False):
        self._echo = echo
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    def get(self, database_url: str) -> Engine:
        database_url = normalize_database_url(database_url)
        with self._lock:
            engine = self._engines.get(database_url)
            if engine is None:
                engine = create_database_engine(database_url, echo=self._echo)
                self._engines[database_url] = engine
            return engine

    def dispose(self) -> None:
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine: Engine) -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)


_default_cache: Optional[EngineCache] = None


def get_engine_cache() -> EngineCache:
    """Process-wide engine cache shared by the SQL collaborators."""
    global _default_cache
    if _default_cache is None:
        _default_cache = EngineCache()
    return _default_cache


def reset_engine_cache() -> None:
    """Dispose cached engines (mainly for testing)."""
    global _default_cache
    if _default_cache is not None:
        _default_cache.dispose()
    _default_cache = None
