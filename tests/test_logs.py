import io
import json
import logging

from experiment_scheduler.logs import setup_logging


def test_json_lines_carry_extras():
    stream = io.StringIO()
    handler = setup_logging("info", json_format=True, stream=stream)
    try:
        logging.getLogger("experiment_scheduler.test").info(
            "scheduled", extra={"experiment_id": "e1", "job_id": "e1_START_EXPERIMENT"}
        )
    finally:
        logging.getLogger().removeHandler(handler)

    line = json.loads(stream.getvalue().strip())
    assert line["msg"] == "scheduled"
    assert line["level"] == "INFO"
    assert line["experiment_id"] == "e1"
    assert line["job_id"] == "e1_START_EXPERIMENT"


def test_setup_replaces_previous_handler():
    root = logging.getLogger()
    level = root.level
    first = setup_logging("INFO")
    second = setup_logging("WARNING")
    try:
        assert first not in root.handlers
        assert second in root.handlers
        assert root.level == logging.WARNING
    finally:
        root.removeHandler(second)
        root.setLevel(level)
