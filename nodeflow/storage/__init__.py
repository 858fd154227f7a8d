"""Database models and storage layer."""

from .database import (
    Base, EngineCache, create_database_engine, create_session_factory,
    create_tables, drop_tables, get_engine_cache, reset_engine_cache
)
from .models import RunRecordModel, LogEntryModel

__all__ = [
    "Base",
    "EngineCache",
    "create_database_engine",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "get_engine_cache",
    "reset_engine_cache",
    "RunRecordModel",
    "LogEntryModel",
]
