"""SQL collaborators for Database Query and Storage nodes.

SQLAlchemy calls block, so each operation runs in a worker thread and the
node awaits it.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import Column, DateTime, Integer, JSON, MetaData, Table, text

from ..core.logging import get_logger
from ..storage.database import EngineCache, get_engine_cache

logger = get_logger(__name__)


class QueryRunner(Protocol):
    async def fetch(self, connection_string: Optional[str], query: str) -> List[Dict[str, Any]]:
        ...


class RecordSink(Protocol):
    async def write(self, connection_string: Optional[str], table: str, records: Sequence[Any]) -> int:
        ...


class SqlQueryRunner:
    """Runs a query and returns its rows as dicts."""

    def __init__(self, default_url: str = "sqlite:///:memory:", engines: Optional[EngineCache] = None):
        self.default_url = default_url
        self._engines = engines

    async def fetch(self, connection_string: Optional[str], query: str) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._fetch, connection_string or self.default_url, query)

    def _fetch(self, url: str, query: str) -> List[Dict[str, Any]]:
        engine = (self._engines or get_engine_cache()).get(url)
        with engine.connect() as conn:
            result = conn.execute(text(query))
            if not result.returns_rows:
                return []
            return [dict(row._mapping) for row in result]


class SqlRecordSink:
    """Appends records as JSON payload rows to a table, creating it if needed."""

    def __init__(self, default_url: str = "sqlite:///:memory:", engines: Optional[EngineCache] = None):
        self.default_url = default_url
        self._engines = engines

    async def write(self, connection_string: Optional[str], table: str, records: Sequence[Any]) -> int:
        return await asyncio.to_thread(self._write, connection_string or self.default_url, table, list(records))

    def _write(self, url: str, table_name: str, records: List[Any]) -> int:
        engine = (self._engines or get_engine_cache()).get(url)
        table = Table(
            table_name,
            MetaData(),
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("payload", JSON, nullable=True),
            Column("written_at", DateTime, nullable=False),
        )
        table.create(engine, checkfirst=True)

        if not records:
            return 0

        written_at = datetime.now(timezone.utc)
        rows = [
            {"payload": json.loads(json.dumps(record, default=str)), "written_at": written_at}
            for record in records
        ]
        with engine.begin() as conn:
            conn.execute(table.insert(), rows)

        logger.debug(f"Wrote {len(rows)} record(s) to {table_name}")
        return len(rows)
