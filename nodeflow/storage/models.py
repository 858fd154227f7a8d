"""SQLAlchemy database models for the run history store."""

from sqlalchemy import Column, String, DateTime, Text, JSON, Integer, Float, ForeignKey
from sqlalchemy.orm import relationship
from .database import Base


class RunRecordModel(Base):
    """Database model for finalized workflow runs."""
    __tablename__ = "run_records"

    id = Column(String, primary_key=True)
    workflow_id = Column(String, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String, nullable=False)  # success, failed
    duration_ms = Column(Float, nullable=False, default=0.0)
    node_statuses = Column(JSON)  # node id -> idle/running/success/error
    error_message = Column(Text)
    # Insertion counter, breaks ties between runs sharing a timestamp
    seq = Column(Integer, nullable=False, index=True)

    logs = relationship(
        "LogEntryModel",
        back_populates="run",
        order_by="LogEntryModel.position",
        cascade="all, delete-orphan",
    )


class LogEntryModel(Base):
    """Database model for run log entries."""
    __tablename__ = "run_log_entries"

    id = Column(String, primary_key=True)
    run_id = Column(String, ForeignKey("run_records.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # emission order within the run
    timestamp = Column(DateTime(timezone=True), nullable=False)
    node_id = Column(String)
    level = Column(String, nullable=False)  # info, success, warn, error
    message = Column(Text, nullable=False)

    run = relationship("RunRecordModel", back_populates="logs")
