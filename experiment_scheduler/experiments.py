from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from experiment_scheduler.errors import NotFoundError
from experiment_scheduler.models import ExperimentState
from experiment_scheduler.repo import UNSET, change_experiment_state, save_experiment

if TYPE_CHECKING:
    from experiment_scheduler.service import ScheduledJobService


log = logging.getLogger(__name__)


class ExperimentService:
    """Owns experiment state; the scheduled-job service calls into it."""

    def __init__(self, database_url: str, scheduled_jobs: Optional["ScheduledJobService"] = None):
        self.database_url = database_url
        self.scheduled_jobs = scheduled_jobs

    def update_state(
        self,
        experiment_id: str,
        state: ExperimentState,
        user: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        changed = change_experiment_state(
            self.database_url,
            experiment_id,
            ExperimentState(state),
            user_id=(user or {}).get("id"),
        )
        if changed is None:
            raise NotFoundError("Experiment", experiment_id)

        previous, experiment = changed
        log.info(
            "Experiment %s moved from %s to %s",
            experiment.id,
            previous,
            experiment.state,
            extra={"experiment_id": experiment.id},
        )
        return experiment.to_dict()

    def save(
        self,
        *,
        experiment_id: Optional[str] = None,
        name: Any = UNSET,
        description: Any = UNSET,
        state: Any = UNSET,
        start_on: Optional[datetime] = UNSET,
        end_on: Optional[datetime] = UNSET,
    ) -> Dict[str, Any]:
        """Create or update an experiment, then resync its scheduled jobs."""

        experiment = save_experiment(
            self.database_url,
            experiment_id=experiment_id,
            name=name,
            description=description,
            state=state,
            start_on=start_on,
            end_on=end_on,
        )
        if self.scheduled_jobs is not None:
            self.scheduled_jobs.update_experiment_schedules(experiment)
        return experiment.to_dict()
