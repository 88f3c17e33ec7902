from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class ExperimentState(str, Enum):
    INACTIVE = "inactive"
    DEMO = "demo"
    SCHEDULED = "scheduled"
    ENROLLING = "enrolling"
    ENROLLMENT_COMPLETE = "enrollmentComplete"
    CANCELLED = "cancelled"


class ScheduleType(str, Enum):
    START_EXPERIMENT = "START_EXPERIMENT"
    END_EXPERIMENT = "END_EXPERIMENT"


class AuditLogType(str, Enum):
    EXPERIMENT_STATE_CHANGED = "experimentStateChanged"


def _utcnow() -> datetime:
    return datetime.utcnow()


def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Columns hold naive UTC; aware values are converted, naive ones are taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc_naive(value).isoformat() + "Z" if value else None


class Experiment(Base):
    __tablename__ = "experiment"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(256), nullable=False)
    description = Column(Text, default="", nullable=False)
    state = Column(String(32), default=ExperimentState.INACTIVE.value, nullable=False, index=True)

    start_on = Column(DateTime, nullable=True)
    end_on = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "state": self.state,
            "start_on": _iso(self.start_on),
            "end_on": _iso(self.end_on),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ScheduledJob(Base):
    """A pending start/end transition of an experiment.

    ``execution_arn`` is the handle of the step function execution that will
    call back at ``timestamp``.
    """

    __tablename__ = "scheduled_job"

    id = Column(String(128), primary_key=True)
    experiment_id = Column(
        String(64),
        ForeignKey("experiment.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(32), nullable=False)
    timestamp = Column(DateTime, nullable=True)
    execution_arn = Column(String(2048), nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_scheduled_job_experiment_type", "experiment_id", "type"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "experiment_id": self.experiment_id,
            "type": self.type,
            "timestamp": _iso(self.timestamp),
            "execution_arn": self.execution_arn,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class User(Base):
    __tablename__ = "user_account"

    id = Column(String(64), primary_key=True)
    email = Column(String(256), nullable=False)
    first_name = Column(String(128), default="", nullable=False)
    last_name = Column(String(128), default="", nullable=False)
    role = Column(String(32), default="reader", nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
        }


class ExperimentAuditLog(Base):
    __tablename__ = "experiment_audit_log"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String(64), nullable=False, index=True)
    experiment_id = Column(String(64), nullable=True, index=True)
    user_id = Column(String(64), nullable=True)
    data_json = Column(Text, default="{}", nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "experiment_id": self.experiment_id,
            "user_id": self.user_id,
            "data": _safe_json_loads(self.data_json) or {},
            "created_at": _iso(self.created_at),
        }


def _safe_json_loads(raw: Optional[str]) -> Optional[Any]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None
