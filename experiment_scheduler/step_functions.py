"""Thin wrapper around the AWS Step Functions API.

The state machine waits until ``timeStamp`` and then POSTs ``body`` to
``url``; this module only starts and stops its executions.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from experiment_scheduler.errors import StepFunctionError


log = logging.getLogger(__name__)


class StepFunctionsClient:
    def __init__(self, region_name: Optional[str] = None, client: Any = None):
        self._client = client or boto3.client("stepfunctions", region_name=region_name)

    @property
    def client(self) -> Any:
        return self._client

    def start_execution(self, state_machine_arn: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Start an execution and return its ``executionArn`` and ``startDate``."""

        if not state_machine_arn:
            raise StepFunctionError("Error in calling step function: state machine ARN is not configured")

        try:
            resp = self._client.start_execution(
                stateMachineArn=state_machine_arn,
                input=json.dumps(payload, default=str),
            )
        except (ClientError, BotoCoreError) as exc:
            raise StepFunctionError(f"Error in calling step function {exc}", details=str(exc)) from exc

        log.debug("Started step function execution", extra={"execution_arn": resp.get("executionArn")})
        return {"executionArn": resp.get("executionArn"), "startDate": resp.get("startDate")}

    def stop_execution(self, execution_arn: str) -> Dict[str, Any]:
        try:
            resp = self._client.stop_execution(executionArn=execution_arn)
        except (ClientError, BotoCoreError) as exc:
            raise StepFunctionError(f"Error in calling step function {exc}", details=str(exc)) from exc

        log.debug("Stopped step function execution", extra={"execution_arn": execution_arn})
        return {"stopDate": resp.get("stopDate")}
