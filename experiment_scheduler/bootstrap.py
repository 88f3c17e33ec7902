from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from experiment_scheduler.config import AppConfig, get_config
from experiment_scheduler.db import database_loader
from experiment_scheduler.logs import setup_logging
from experiment_scheduler.seed import seed_loader


log = logging.getLogger(__name__)

Loader = Callable[["Application"], None]


class Application:
    """Shared state handed to every loader, plus shutdown hooks."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.data: Dict[str, Any] = {}
        self._shutdown_hooks: List[Callable[[], Any]] = []

    def set_data(self, key: str, value: Any) -> None:
        self.data[key] = value

    def get_data(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def on_shutdown(self, callback: Callable[[], Any]) -> None:
        self._shutdown_hooks.append(callback)

    def shutdown(self) -> None:
        """Run shutdown hooks, last registered first."""

        while self._shutdown_hooks:
            hook = self._shutdown_hooks.pop()
            try:
                hook()
            except Exception:  # noqa: BLE001
                log.exception("Shutdown hook %r failed", hook)

    def __enter__(self) -> "Application":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()


def logging_loader(app: Application) -> None:
    handler = setup_logging(app.config.log_level, json_format=app.config.log_json)
    app.on_shutdown(lambda: logging.getLogger().removeHandler(handler))


DEFAULT_LOADERS = (logging_loader, database_loader, seed_loader)


def bootstrap(config: Optional[AppConfig] = None, loaders: Iterable[Loader] = DEFAULT_LOADERS) -> Application:
    """Run the loaders in order; a failing loader shuts down what was started."""

    app = Application(config or get_config())
    try:
        for loader in loaders:
            loader(app)
    except Exception:
        app.shutdown()
        raise
    return app
