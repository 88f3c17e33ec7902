"""Operational command line for the scheduled-job service.

Usage examples (from the repository root):

  python -m experiment_scheduler init-db
  python -m experiment_scheduler list-jobs --type start
  python -m experiment_scheduler sync <experiment_id>
  python -m experiment_scheduler start <job_id>
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional

from experiment_scheduler.bootstrap import Application, bootstrap
from experiment_scheduler.errors import ExperimentSchedulerError, NotFoundError
from experiment_scheduler.repo import find_scheduled_jobs, get_experiment, init_db
from experiment_scheduler.seed import seed_system_user
from experiment_scheduler.service import ScheduledJobService
from experiment_scheduler.step_functions import StepFunctionsClient


def build_service(app: Application, step_functions: Optional[StepFunctionsClient] = None) -> ScheduledJobService:
    cfg = app.config.scheduler
    return ScheduledJobService(
        app.get_data("database_url"),
        step_functions or StepFunctionsClient(region_name=cfg.aws_region),
        cfg,
    )


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="experiment_scheduler", description="Experiment scheduled-job operations")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables and seed the system user")

    ls = sub.add_parser("list-jobs", help="list scheduled jobs")
    ls.add_argument("--type", choices=["start", "end"], default=None)

    sync = sub.add_parser("sync", help="resync the scheduled jobs of an experiment")
    sync.add_argument("experiment_id")

    start = sub.add_parser("start", help="run a START_EXPERIMENT callback by hand")
    start.add_argument("job_id")

    end = sub.add_parser("end", help="run an END_EXPERIMENT callback by hand")
    end.add_argument("job_id")

    return p


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def main(
    argv: Optional[List[str]] = None,
    *,
    app: Optional[Application] = None,
    step_functions: Optional[StepFunctionsClient] = None,
) -> int:
    args = _parser().parse_args(argv)

    owns_app = app is None
    try:
        app = app or bootstrap()
    except ExperimentSchedulerError as exc:
        _print(exc.to_dict())
        return 2

    try:
        database_url = app.get_data("database_url")

        if args.command == "init-db":
            init_db(database_url)
            _print({"ok": True, "system_user": seed_system_user(database_url)})
            return 0

        service = build_service(app, step_functions)

        if args.command == "list-jobs":
            if args.type == "start":
                jobs = service.get_all_start_experiment()
            elif args.type == "end":
                jobs = service.get_all_end_experiment()
            else:
                jobs = service.get_all_start_experiment() + service.get_all_end_experiment()
            _print({"ok": True, "jobs": [j.to_dict() for j in jobs]})
            return 0

        if args.command == "sync":
            experiment = get_experiment(database_url, args.experiment_id)
            if experiment is None:
                raise NotFoundError("Experiment", args.experiment_id)
            service.update_experiment_schedules(experiment)
            jobs = find_scheduled_jobs(database_url, experiment_id=experiment.id)
            _print({"ok": True, "jobs": [j.to_dict() for j in jobs]})
            return 0

        if args.command == "start":
            _print({"ok": True, "experiment": service.start_experiment(args.job_id)})
            return 0

        if args.command == "end":
            _print({"ok": True, "experiment": service.end_experiment(args.job_id)})
            return 0

        return 1
    except ExperimentSchedulerError as exc:
        _print({"ok": False, **exc.to_dict()})
        return 1
    finally:
        if owns_app:
            app.shutdown()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
