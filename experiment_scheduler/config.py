from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection options for the relational database.

    DB selection:
    - DATABASE_URL: full SQLAlchemy URL (preferred, wins over the parts below)
    - DB_CONNECTION: postgres|mysql|sqlite (default: sqlite)
    - DB_HOST / DB_PORT / DB_USERNAME / DB_PASSWORD / DB_DATABASE
    - If nothing is set, defaults to local SQLite at data/experiments.db

    Behaviour:
    - DB_SYNCHRONIZE: create missing tables on boot (default: false)
    - DB_LOGGING: echo SQL statements (default: false)
    """

    connection: str
    host: str
    port: Optional[int]
    username: str
    password: str
    database: str
    synchronize: bool
    logging: bool
    url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        return cls(
            connection=env_str("DB_CONNECTION", "sqlite").lower(),
            host=env_str("DB_HOST", "localhost"),
            port=env_int("DB_PORT", 0) or None,
            username=env_str("DB_USERNAME", ""),
            password=env_str("DB_PASSWORD", "", strip=False),
            database=env_str("DB_DATABASE", "data/experiments.db"),
            synchronize=env_bool("DB_SYNCHRONIZE", False),
            logging=env_bool("DB_LOGGING", False),
            url=env_optional_str("DATABASE_URL"),
        )


@dataclass(frozen=True)
class SchedulerConfig:
    """Where scheduled jobs are executed and where they call back.

    - HOST_URL: public base URL of this backend, the step function POSTs here
    - SCHEDULER_STEP_FUNCTION: ARN of the wait-then-callback state machine
    - AWS_REGION: region of the Step Functions client (default: us-east-1)
    """

    host_url: str
    step_function_arn: str
    aws_region: str

    @property
    def start_url(self) -> str:
        return self.host_url.rstrip("/") + "/scheduledJobs/start"

    @property
    def end_url(self) -> str:
        return self.host_url.rstrip("/") + "/scheduledJobs/end"

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        return cls(
            host_url=env_str("HOST_URL", "http://localhost:3030/api"),
            step_function_arn=env_str("SCHEDULER_STEP_FUNCTION", ""),
            aws_region=env_str("AWS_REGION", "us-east-1"),
        )


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig
    scheduler: SchedulerConfig
    log_level: str
    log_json: bool

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            database=DatabaseConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            log_level=env_str("LOG_LEVEL", "INFO").upper(),
            log_json=env_bool("LOG_JSON", False),
        )


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the application configuration (cached)."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    global _config
    _config = None


def env_str(name: str, default: str, *, strip: bool = True) -> str:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip() if strip else value


def env_optional_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip() or default


def env_bool(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in {"1", "true", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "no", "n", "off"}:
        return False
    return default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default
