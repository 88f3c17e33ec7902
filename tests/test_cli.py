import json
from datetime import datetime

from conftest import FakeStepFunctions

from experiment_scheduler.bootstrap import Application
from experiment_scheduler.cli import main
from experiment_scheduler.config import AppConfig, DatabaseConfig
from experiment_scheduler.repo import save_experiment


def _app(database_url, scheduler_config):
    app = Application(
        AppConfig(
            database=DatabaseConfig(
                connection="sqlite",
                host="",
                port=None,
                username="",
                password="",
                database="",
                synchronize=False,
                logging=False,
                url=database_url,
            ),
            scheduler=scheduler_config,
            log_level="INFO",
            log_json=False,
        )
    )
    app.set_data("database_url", database_url)
    return app


def _run(capsys, argv, app, sfn=None):
    code = main(argv, app=app, step_functions=sfn or FakeStepFunctions())
    return code, json.loads(capsys.readouterr().out)


def test_init_db(capsys, database_url, scheduler_config):
    code, out = _run(capsys, ["init-db"], _app(database_url, scheduler_config))

    assert code == 0
    assert out["system_user"]["id"] == "systemUser"


def test_sync_then_list_and_start(capsys, database_url, scheduler_config):
    app = _app(database_url, scheduler_config)
    exp = save_experiment(database_url, name="Decimals", state="scheduled", start_on=datetime(2031, 5, 1))

    code, out = _run(capsys, ["sync", exp.id], app)
    assert code == 0
    assert [j["type"] for j in out["jobs"]] == ["START_EXPERIMENT"]

    code, out = _run(capsys, ["list-jobs", "--type", "start"], app)
    assert [j["experiment_id"] for j in out["jobs"]] == [exp.id]

    code, out = _run(capsys, ["start", f"{exp.id}_START_EXPERIMENT"], app)
    assert out["experiment"]["state"] == "enrolling"


def test_sync_unknown_experiment(capsys, database_url, scheduler_config):
    code, out = _run(capsys, ["sync", "nope"], _app(database_url, scheduler_config))

    assert code == 1
    assert out["ok"] is False
    assert "Experiment not found" in out["message"]
