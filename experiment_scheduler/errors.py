"""Error types shared by the loader and the services.

Every error carries a ``ServerError`` code so callers can report a stable
``{"type": ..., "message": ...}`` payload.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ServerError(str, Enum):
    QUERY_FAILED = "Query Failed error"
    DB_UNREACHABLE = "Database not reachable"
    DB_AUTH_FAIL = "Database auth fail"
    MISSING_PARAMS = "Missing parameters"
    INVALID_CONFIG = "Invalid configuration"


class ExperimentSchedulerError(Exception):
    """Base class for errors raised by this package."""

    error_type: ServerError = ServerError.QUERY_FAILED

    def __init__(self, message: Optional[str] = None, *, details: Any = None):
        self.message = message or self.error_type.value
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.error_type.value, "message": self.message}


class DatabaseUnreachableError(ExperimentSchedulerError):
    error_type = ServerError.DB_UNREACHABLE


class DatabaseAuthError(ExperimentSchedulerError):
    error_type = ServerError.DB_AUTH_FAIL


class StepFunctionError(ExperimentSchedulerError):
    error_type = ServerError.QUERY_FAILED


class ConfigurationError(ExperimentSchedulerError):
    error_type = ServerError.INVALID_CONFIG


class NotFoundError(ExperimentSchedulerError):
    error_type = ServerError.QUERY_FAILED

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")
