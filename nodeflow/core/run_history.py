"""Run history stores for finalized run records."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..models.core import LogEntry, RunRecord
from ..storage.database import create_database_engine, create_session_factory, create_tables
from ..storage.models import LogEntryModel, RunRecordModel
from .exceptions import StorageError
from .logging import get_logger

logger = get_logger(__name__)


class RunHistoryStore(ABC):
    """Append-only store of finalized run records.

    Records are immutable once appended; there is no update or delete.
    ``list`` returns the newest run first.
    """

    @abstractmethod
    def append(self, record: RunRecord) -> None:
        """
        Store a finalized record.

        Raises:
            StorageError: If a record with the same id already exists
        """

    @abstractmethod
    def list(self, workflow_id: Optional[str] = None, limit: Optional[int] = None) -> List[RunRecord]:
        """Records newest first, optionally for one workflow and capped at ``limit``."""

    @abstractmethod
    def get(self, run_id: str) -> RunRecord:
        """
        Record with the given id.

        Raises:
            StorageError: If no such record exists
        """


def _check_limit(limit: Optional[int]) -> None:
    if limit is not None and limit < 0:
        raise StorageError("Limit cannot be negative", operation="list")


def _detached(record: RunRecord) -> RunRecord:
    # logs is a tuple of frozen entries; only the status map can be mutated in place
    return record.model_copy(update={"node_statuses": dict(record.node_statuses)})


class InMemoryRunHistory(RunHistoryStore):
    """Run history kept in process memory."""

    def __init__(self):
        self._records: Dict[str, RunRecord] = {}
        self._order: List[str] = []
        self._lock = threading.Lock()

    def append(self, record: RunRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise StorageError(f"Run record {record.id} already exists", operation="append")
            self._records[record.id] = _detached(record)
            self._order.append(record.id)
        logger.debug(f"Appended run record {record.id} ({record.status.value})")

    def list(self, workflow_id: Optional[str] = None, limit: Optional[int] = None) -> List[RunRecord]:
        _check_limit(limit)
        with self._lock:
            indexed = [(position, self._records[run_id]) for position, run_id in enumerate(self._order)]

        if workflow_id is not None:
            indexed = [(position, record) for position, record in indexed if record.workflow_id == workflow_id]

        indexed.sort(key=lambda item: (item[1].timestamp, item[0]), reverse=True)
        records = [record for _, record in indexed]
        if limit is not None:
            records = records[:limit]
        return [_detached(record) for record in records]

    def get(self, run_id: str) -> RunRecord:
        with self._lock:
            record = self._records.get(run_id)
        if record is None:
            raise StorageError(f"Run record {run_id} not found", operation="get")
        return _detached(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes even for timezone-aware columns
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class SqlRunHistory(RunHistoryStore):
    """
    Run history persisted with SQLAlchemy.

    Records live in ``run_records`` and their log entries, in emission
    order, in ``run_log_entries``. Tables are created on construction.
    """

    def __init__(self, database_url: str = "sqlite:///./nodeflow.db", echo: bool = False, engine=None):
        self.engine = engine or create_database_engine(database_url, echo=echo)
        self._session_factory = create_session_factory(self.engine)
        self._lock = threading.Lock()
        create_tables(self.engine)
        logger.info(f"SQL run history ready at {self.engine.url.render_as_string(hide_password=True)}")

    def append(self, record: RunRecord) -> None:
        with self._lock:
            db = self._session_factory()
            try:
                if db.get(RunRecordModel, record.id) is not None:
                    raise StorageError(
                        f"Run record {record.id} already exists",
                        operation="append", table=RunRecordModel.__tablename__,
                    )

                seq = (db.query(func.max(RunRecordModel.seq)).scalar() or 0) + 1
                run_model = RunRecordModel(
                    id=record.id,
                    workflow_id=record.workflow_id,
                    timestamp=record.timestamp,
                    status=record.status.value,
                    duration_ms=record.duration_ms,
                    node_statuses={node_id: status.value for node_id, status in record.node_statuses.items()},
                    error_message=record.error_message,
                    seq=seq,
                )
                run_model.logs = [
                    LogEntryModel(
                        id=entry.id,
                        position=position,
                        timestamp=entry.timestamp,
                        node_id=entry.node_id,
                        level=entry.level.value,
                        message=entry.message,
                    )
                    for position, entry in enumerate(record.logs)
                ]
                db.add(run_model)
                db.commit()
                logger.debug(f"Persisted run record {record.id} with {len(record.logs)} log entries")

            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(f"Failed to persist run record: {str(e)}", operation="append")
            finally:
                db.close()

    def list(self, workflow_id: Optional[str] = None, limit: Optional[int] = None) -> List[RunRecord]:
        _check_limit(limit)
        db = self._session_factory()
        try:
            query = db.query(RunRecordModel)
            if workflow_id is not None:
                query = query.filter(RunRecordModel.workflow_id == workflow_id)
            query = query.order_by(RunRecordModel.timestamp.desc(), RunRecordModel.seq.desc())
            if limit is not None:
                query = query.limit(limit)
            return [self._to_record(run_model) for run_model in query.all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list run records: {str(e)}", operation="list")
        finally:
            db.close()

    def get(self, run_id: str) -> RunRecord:
        db = self._session_factory()
        try:
            run_model = db.get(RunRecordModel, run_id)
            if run_model is None:
                raise StorageError(
                    f"Run record {run_id} not found",
                    operation="get", table=RunRecordModel.__tablename__,
                )
            return self._to_record(run_model)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load run record: {str(e)}", operation="get")
        finally:
            db.close()

    @staticmethod
    def _to_record(run_model: RunRecordModel) -> RunRecord:
        return RunRecord(
            id=run_model.id,
            workflow_id=run_model.workflow_id,
            timestamp=_as_utc(run_model.timestamp),
            status=run_model.status,
            duration_ms=run_model.duration_ms,
            node_statuses=run_model.node_statuses or {},
            error_message=run_model.error_message,
            logs=[
                LogEntry(
                    id=entry.id,
                    timestamp=_as_utc(entry.timestamp),
                    node_id=entry.node_id,
                    level=entry.level,
                    message=entry.message,
                )
                for entry in run_model.logs
            ],
        )

    def dispose(self) -> None:
        self.engine.dispose()
