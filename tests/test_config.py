from experiment_scheduler import config


def test_defaults(monkeypatch):
    for name in ("DATABASE_URL", "DB_CONNECTION", "DB_PORT", "DB_SYNCHRONIZE", "HOST_URL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    cfg = config.AppConfig.from_env()

    assert cfg.database.connection == "sqlite"
    assert cfg.database.port is None
    assert cfg.database.synchronize is False
    assert cfg.log_level == "INFO"
    assert cfg.scheduler.start_url == "http://localhost:3030/api/scheduledJobs/start"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("DB_CONNECTION", "Postgres")
    monkeypatch.setenv("DB_PORT", "5433")
    monkeypatch.setenv("DB_SYNCHRONIZE", "yes")
    monkeypatch.setenv("HOST_URL", "https://upgrade.example.org/")
    monkeypatch.setenv("SCHEDULER_STEP_FUNCTION", "arn:sm")

    cfg = config.AppConfig.from_env()

    assert cfg.database.connection == "postgres"
    assert cfg.database.port == 5433
    assert cfg.database.synchronize is True
    assert cfg.scheduler.end_url == "https://upgrade.example.org/scheduledJobs/end"
    assert cfg.scheduler.step_function_arn == "arn:sm"


def test_bad_values_fall_back(monkeypatch):
    monkeypatch.setenv("DB_PORT", "not-a-port")
    monkeypatch.setenv("DB_LOGGING", "maybe")

    cfg = config.DatabaseConfig.from_env()

    assert cfg.port is None
    assert cfg.logging is False


def test_get_config_is_cached(monkeypatch):
    config.reset_config()
    monkeypatch.setenv("LOG_LEVEL", "debug")
    first = config.get_config()
    monkeypatch.setenv("LOG_LEVEL", "error")

    assert config.get_config() is first
    assert first.log_level == "DEBUG"
    config.reset_config()
