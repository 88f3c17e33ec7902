"""Logging helpers.

Modules log through ``logging.getLogger(__name__)``; ``setup_logging`` wires
the root logger once at boot, optionally with one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_EXTRA_KEYS = ("experiment_id", "job_id", "execution_arn", "schedule_type", "code")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for k in _EXTRA_KEYS:
            v = getattr(record, k, None)
            if v is not None:
                base[k] = v

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=True, sort_keys=True, default=str)


def setup_logging(level: str = "INFO", *, json_format: bool = False, stream: Optional[Any] = None) -> logging.Handler:
    """Install a single stream handler on the root logger.

    Calling it again replaces the handler installed by the previous call.
    """

    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_experiment_scheduler", False):
            root.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._experiment_scheduler = True  # type: ignore[attr-defined]
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root.addHandler(handler)

    resolved = logging.getLevelName(str(level or "INFO").upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    return handler
