"""Scheduled-job orchestration.

Each experiment owns at most one START_EXPERIMENT and one END_EXPERIMENT job.
A job row mirrors a running step function execution that will call back
``/scheduledJobs/start`` or ``/scheduledJobs/end`` at the job's timestamp;
the callback lands in ``start_experiment`` / ``end_experiment``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from experiment_scheduler.config import SchedulerConfig
from experiment_scheduler.errors import StepFunctionError
from experiment_scheduler.experiments import ExperimentService
from experiment_scheduler.models import ExperimentState, ScheduledJob, ScheduleType, as_utc_naive
from experiment_scheduler.repo import (
    delete_scheduled_job,
    find_scheduled_jobs,
    get_experiment,
    get_scheduled_job,
    get_user,
    upsert_scheduled_job,
)
from experiment_scheduler.seed import SYSTEM_USER
from experiment_scheduler.step_functions import StepFunctionsClient


log = logging.getLogger(__name__)


def _iso_millis(value: datetime) -> str:
    return as_utc_naive(value).isoformat(timespec="milliseconds") + "Z"


def scheduled_job_id(experiment_id: str, schedule_type: ScheduleType) -> str:
    return f"{experiment_id}_{ScheduleType(schedule_type).value}"


class ScheduledJobService:
    def __init__(
        self,
        database_url: str,
        step_functions: StepFunctionsClient,
        scheduler_config: SchedulerConfig,
        experiment_service: Optional[ExperimentService] = None,
    ):
        self.database_url = database_url
        self.step_functions = step_functions
        self.config = scheduler_config
        self.experiment_service = experiment_service or ExperimentService(database_url, scheduled_jobs=self)

    # Step function callbacks

    def start_experiment(self, job_id: str) -> Dict[str, Any]:
        return self._transition(job_id, ExperimentState.ENROLLING)

    def end_experiment(self, job_id: str) -> Dict[str, Any]:
        return self._transition(job_id, ExperimentState.ENROLLMENT_COMPLETE)

    def _transition(self, job_id: str, state: ExperimentState) -> Dict[str, Any]:
        job = get_scheduled_job(self.database_url, job_id)
        if not job or not job.get("experiment_id"):
            log.warning("Scheduled job %s not found", job_id, extra={"job_id": job_id})
            return {}

        experiment = get_experiment(self.database_url, job["experiment_id"])
        if experiment is None:
            log.warning(
                "Experiment of scheduled job %s not found",
                job_id,
                extra={"job_id": job_id, "experiment_id": job["experiment_id"]},
            )
            return {}

        system_user = get_user(self.database_url, SYSTEM_USER["id"])
        return self.experiment_service.update_state(job["experiment_id"], state, system_user)

    # Queries

    def get_all_start_experiment(self) -> List[ScheduledJob]:
        log.info("get all start experiment scheduled jobs")
        return find_scheduled_jobs(self.database_url, type=ScheduleType.START_EXPERIMENT)

    def get_all_end_experiment(self) -> List[ScheduledJob]:
        log.info("get all end experiment scheduled jobs")
        return find_scheduled_jobs(self.database_url, type=ScheduleType.END_EXPERIMENT)

    # Synchronisation

    def update_experiment_schedules(self, experiment: Any) -> None:
        """Bring the experiment's job rows and executions in line with its state and dates.

        Failures are logged and swallowed so that saving an experiment never
        fails because the scheduler could not be reached.
        """

        try:
            state = ExperimentState(experiment.state)
            start_on = as_utc_naive(experiment.start_on)
            end_on = as_utc_naive(experiment.end_on)

            start_condition = state == ExperimentState.SCHEDULED
            end_condition = (
                state not in (ExperimentState.ENROLLMENT_COMPLETE, ExperimentState.CANCELLED)
                and end_on is not None
            )

            jobs = find_scheduled_jobs(self.database_url, experiment_id=experiment.id)
            self._sync_job(experiment.id, ScheduleType.START_EXPERIMENT, start_condition, start_on, jobs)
            self._sync_job(experiment.id, ScheduleType.END_EXPERIMENT, end_condition, end_on, jobs)
        except Exception:  # noqa: BLE001
            log.exception(
                "Error in experiment scheduler",
                extra={"experiment_id": getattr(experiment, "id", None)},
            )

    def _sync_job(
        self,
        experiment_id: str,
        schedule_type: ScheduleType,
        condition: bool,
        when: Optional[datetime],
        jobs: Sequence[ScheduledJob],
    ) -> None:
        existing = next((j for j in jobs if j.type == schedule_type.value), None)

        if not condition:
            if existing is not None:
                delete_scheduled_job(self.database_url, existing.id)
                if existing.execution_arn:
                    self._unschedule(existing.execution_arn)
            return

        if existing is not None and (when is None or existing.timestamp == when):
            return
        if when is None:
            log.warning(
                "No date to schedule %s on",
                schedule_type.value,
                extra={"experiment_id": experiment_id, "schedule_type": schedule_type.value},
            )
            return

        job_id = existing.id if existing is not None else scheduled_job_id(experiment_id, schedule_type)
        response = self._schedule(when, {"id": job_id}, schedule_type)

        # Already scheduled on an old date.
        if existing is not None and existing.execution_arn:
            try:
                self._unschedule(existing.execution_arn)
            except StepFunctionError:
                log.warning(
                    "Could not stop previous execution",
                    exc_info=True,
                    extra={"job_id": job_id, "execution_arn": existing.execution_arn},
                )

        upsert_scheduled_job(
            self.database_url,
            job_id=job_id,
            experiment_id=experiment_id,
            type=schedule_type,
            timestamp=when,
            execution_arn=response.get("executionArn"),
        )
        log.info(
            "Scheduled %s at %s",
            schedule_type.value,
            _iso_millis(when),
            extra={"experiment_id": experiment_id, "job_id": job_id},
        )

    def _schedule(self, timestamp: datetime, body: Dict[str, Any], schedule_type: ScheduleType) -> Dict[str, Any]:
        url = self.config.start_url if schedule_type == ScheduleType.START_EXPERIMENT else self.config.end_url
        payload = {
            "timeStamp": _iso_millis(timestamp),
            "body": body,
            "url": url,
        }
        return self.step_functions.start_execution(self.config.step_function_arn, payload)

    def _unschedule(self, execution_arn: str) -> Dict[str, Any]:
        return self.step_functions.stop_execution(execution_arn)
