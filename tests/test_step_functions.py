import json
from datetime import datetime

import boto3
import pytest
from botocore.stub import Stubber

from experiment_scheduler.errors import ServerError, StepFunctionError
from experiment_scheduler.step_functions import StepFunctionsClient


STATE_MACHINE = "arn:aws:states:us-east-1:123456789012:stateMachine:scheduler"
EXECUTION = "arn:aws:states:us-east-1:123456789012:execution:scheduler:abc"


@pytest.fixture
def sfn(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    client = boto3.client("stepfunctions", region_name="us-east-1")
    with Stubber(client) as stubber:
        yield StepFunctionsClient(client=client), stubber


def test_start_execution_sends_json_input(sfn):
    wrapper, stubber = sfn
    payload = {"timeStamp": "2030-01-01T09:00:00.000Z", "body": {"id": "e1_START_EXPERIMENT"}, "url": "http://x/start"}
    stubber.add_response(
        "start_execution",
        {"executionArn": EXECUTION, "startDate": datetime(2029, 12, 1)},
        {"stateMachineArn": STATE_MACHINE, "input": json.dumps(payload)},
    )

    resp = wrapper.start_execution(STATE_MACHINE, payload)

    assert resp["executionArn"] == EXECUTION
    stubber.assert_no_pending_responses()


def test_stop_execution(sfn):
    wrapper, stubber = sfn
    stubber.add_response("stop_execution", {"stopDate": datetime(2029, 12, 2)}, {"executionArn": EXECUTION})

    resp = wrapper.stop_execution(EXECUTION)

    assert resp["stopDate"] is not None
    stubber.assert_no_pending_responses()


def test_client_error_becomes_step_function_error(sfn):
    wrapper, stubber = sfn
    stubber.add_client_error("start_execution", service_error_code="StateMachineDoesNotExist", service_message="gone")

    with pytest.raises(StepFunctionError) as excinfo:
        wrapper.start_execution(STATE_MACHINE, {"body": {}})

    assert excinfo.value.to_dict()["type"] == ServerError.QUERY_FAILED.value
    assert excinfo.value.message.startswith("Error in calling step function")


def test_missing_state_machine_arn_is_rejected(sfn):
    wrapper, _ = sfn

    with pytest.raises(StepFunctionError):
        wrapper.start_execution("", {"body": {}})
