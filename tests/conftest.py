import pytest

from experiment_scheduler.config import SchedulerConfig
from experiment_scheduler.db import dispose_engine
from experiment_scheduler.errors import StepFunctionError
from experiment_scheduler.repo import init_db
from experiment_scheduler.seed import seed_system_user
from experiment_scheduler.service import ScheduledJobService


class FakeStepFunctions:
    """Records executions instead of calling AWS."""

    def __init__(self, fail_start=False, fail_stop=False):
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = []
        self.stopped = []

    def start_execution(self, state_machine_arn, payload):
        if self.fail_start:
            raise StepFunctionError("Error in calling step function boom")
        self.started.append((state_machine_arn, payload))
        return {"executionArn": f"arn:aws:states:execution:{len(self.started)}", "startDate": None}

    def stop_execution(self, execution_arn):
        if self.fail_stop:
            raise StepFunctionError("Error in calling step function boom")
        self.stopped.append(execution_arn)
        return {"stopDate": None}


@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{(tmp_path / 'experiments.db').as_posix()}"
    init_db(url)
    seed_system_user(url)
    yield url
    dispose_engine()


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(
        host_url="https://upgrade.example.org/api/",
        step_function_arn="arn:aws:states:us-east-1:123456789012:stateMachine:scheduler",
        aws_region="us-east-1",
    )


@pytest.fixture
def step_functions():
    return FakeStepFunctions()


@pytest.fixture
def service(database_url, step_functions, scheduler_config):
    return ScheduledJobService(database_url, step_functions, scheduler_config)
