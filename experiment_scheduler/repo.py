from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select

from experiment_scheduler.db import get_engine, get_sessionmaker
from experiment_scheduler.models import (
    AuditLogType,
    Base,
    Experiment,
    ExperimentAuditLog,
    ExperimentState,
    ScheduledJob,
    ScheduleType,
    User,
    as_utc_naive,
)


UNSET: Any = object()


def init_db(database_url: str) -> None:
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)


# Scheduled jobs


def get_scheduled_job(database_url: str, job_id: str) -> Optional[Dict[str, Any]]:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        j = s.get(ScheduledJob, str(job_id))
        return j.to_dict() if j else None


def find_scheduled_jobs(
    database_url: str,
    *,
    experiment_id: Optional[str] = None,
    type: Optional[ScheduleType] = None,
) -> List[ScheduledJob]:
    """Return detached job rows, optionally filtered by experiment and type."""

    sm = get_sessionmaker(database_url)
    with sm() as s:
        q = select(ScheduledJob).order_by(ScheduledJob.created_at.asc())
        if experiment_id:
            q = q.where(ScheduledJob.experiment_id == str(experiment_id))
        if type is not None:
            q = q.where(ScheduledJob.type == ScheduleType(type).value)
        jobs = s.execute(q).scalars().all()
        for j in jobs:
            s.expunge(j)
        return list(jobs)


def upsert_scheduled_job(
    database_url: str,
    *,
    job_id: str,
    experiment_id: str,
    type: ScheduleType,
    timestamp: Optional[datetime],
    execution_arn: Optional[str],
) -> Dict[str, Any]:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        j = s.get(ScheduledJob, str(job_id))
        if j is None:
            j = ScheduledJob(id=str(job_id))
            s.add(j)

        j.experiment_id = str(experiment_id)
        j.type = ScheduleType(type).value
        j.timestamp = as_utc_naive(timestamp)
        j.execution_arn = execution_arn

        s.commit()
        return j.to_dict()


def delete_scheduled_job(database_url: str, job_id: str) -> bool:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        j = s.get(ScheduledJob, str(job_id))
        if not j:
            return False
        s.delete(j)
        s.commit()
        return True


# Experiments


def get_experiment(database_url: str, experiment_id: str) -> Optional[Experiment]:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        e = s.get(Experiment, str(experiment_id))
        if e is not None:
            s.expunge(e)
        return e


def save_experiment(
    database_url: str,
    *,
    experiment_id: Optional[str] = None,
    name: Any = UNSET,
    description: Any = UNSET,
    state: Any = UNSET,
    start_on: Any = UNSET,
    end_on: Any = UNSET,
) -> Experiment:
    """Create an experiment, or update the given fields of an existing one."""

    sm = get_sessionmaker(database_url)
    with sm() as s:
        e = s.get(Experiment, str(experiment_id)) if experiment_id else None
        if e is None:
            e = Experiment()
            if experiment_id:
                e.id = str(experiment_id)
            e.name = "Untitled"
            e.state = ExperimentState.INACTIVE.value
            s.add(e)

        if name is not UNSET:
            e.name = str(name or "Untitled")
        if description is not UNSET:
            e.description = str(description or "")
        if state is not UNSET:
            e.state = ExperimentState(state).value
        if start_on is not UNSET:
            e.start_on = as_utc_naive(start_on)
        if end_on is not UNSET:
            e.end_on = as_utc_naive(end_on)

        s.commit()
        s.expunge(e)
        return e


# Users


def get_user(database_url: str, user_id: str) -> Optional[Dict[str, Any]]:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        u = s.get(User, str(user_id))
        return u.to_dict() if u else None


def upsert_user(
    database_url: str,
    *,
    user_id: str,
    email: str,
    first_name: str = "",
    last_name: str = "",
    role: str = "reader",
) -> Dict[str, Any]:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        u = s.get(User, str(user_id))
        if u is None:
            u = User(id=str(user_id))
            s.add(u)

        u.email = str(email)
        u.first_name = str(first_name or "")
        u.last_name = str(last_name or "")
        u.role = str(role or "reader")

        s.commit()
        return u.to_dict()


# Audit log


def change_experiment_state(
    database_url: str,
    experiment_id: str,
    state: ExperimentState,
    *,
    user_id: Optional[str],
) -> Optional[Tuple[str, Experiment]]:
    """Set the state and write its audit row in one commit.

    Returns ``(previous_state, experiment)``, or None when the experiment is gone.
    """

    new_state = ExperimentState(state).value
    sm = get_sessionmaker(database_url)
    with sm() as s:
        e = s.get(Experiment, str(experiment_id))
        if not e:
            return None

        previous = e.state
        s.add(
            ExperimentAuditLog(
                type=AuditLogType.EXPERIMENT_STATE_CHANGED.value,
                experiment_id=e.id,
                user_id=user_id,
                data_json=json.dumps(
                    {"experimentName": e.name, "previousState": previous, "newState": new_state}
                ),
            )
        )
        e.state = new_state

        s.commit()
        s.expunge(e)
        return previous, e


def list_audit_logs(
    database_url: str,
    *,
    experiment_id: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    sm = get_sessionmaker(database_url)
    with sm() as s:
        q = select(ExperimentAuditLog).order_by(ExperimentAuditLog.created_at.desc()).limit(int(limit))
        if experiment_id:
            q = q.where(ExperimentAuditLog.experiment_id == str(experiment_id))
        rows = s.execute(q).scalars().all()
        return [r.to_dict() for r in rows]
