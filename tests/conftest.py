"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from nodeflow.config import get_testing_config
from nodeflow.core.execution_engine import ExecutionEngine
from nodeflow.core.node_registry import create_default_registry
from nodeflow.core.run_history import InMemoryRunHistory
from nodeflow.integrations.http import HttpResponse
from nodeflow.models.core import Connection, Node

FIXED_TIME = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


class FakeTransport:
    """HTTP transport returning canned responses and recording every request."""

    def __init__(self, responses: Optional[Dict[str, HttpResponse]] = None):
        self.responses = responses or {}
        self.requests: List[Dict[str, Any]] = []

    async def request(self, method, url, headers=None, body=None) -> HttpResponse:
        self.requests.append({"method": method, "url": url, "headers": headers, "body": body})
        return self.responses.get(url, HttpResponse(status=200, reason="OK", body={"ok": True}))


class FakeQueryRunner:
    """Query runner returning fixed rows, or raising ``error`` when set."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.rows = rows if rows is not None else [{"close": 101.0}, {"close": 102.5}]
        self.error = error
        self.queries: List[str] = []

    async def fetch(self, connection_string, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.rows)


class FakeRecordSink:
    """Record sink keeping writes in memory."""

    def __init__(self):
        self.writes: List[Dict[str, Any]] = []

    async def write(self, connection_string, table, records):
        self.writes.append({"table": table, "records": list(records)})
        return len(records)


def make_node(node_id: str, node_type: str, label: str = "", **config) -> Node:
    return Node(id=node_id, type=node_type, label=label or node_id, config=config)


def connect(source_id: str, target_id: str, conn_id: Optional[str] = None) -> Connection:
    return Connection(id=conn_id or f"{source_id}->{target_id}", source_id=source_id, target_id=target_id)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def query_runner():
    return FakeQueryRunner()


@pytest.fixture
def record_sink():
    return FakeRecordSink()


@pytest.fixture
def testing_config():
    return get_testing_config()


@pytest.fixture
def registry(transport, query_runner, record_sink, fixed_clock, testing_config):
    """Default registry wired to in-memory collaborators."""
    return create_default_registry(
        http_transport=transport,
        query_runner=query_runner,
        record_sink=record_sink,
        clock=fixed_clock,
        config=testing_config,
    )


@pytest.fixture
def history():
    return InMemoryRunHistory()


@pytest.fixture
def engine(registry, history):
    return ExecutionEngine(registry=registry, history=history)
