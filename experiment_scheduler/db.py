"""Database engine, session management and the boot-time database loader."""

from __future__ import annotations

import errno
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from experiment_scheduler.config import DatabaseConfig, get_config
from experiment_scheduler.errors import ConfigurationError, DatabaseAuthError, DatabaseUnreachableError
from experiment_scheduler.models import Base

if TYPE_CHECKING:
    from experiment_scheduler.bootstrap import Application


log = logging.getLogger(__name__)

_DRIVERS = {
    "postgres": "postgresql+psycopg2",
    "postgresql": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
    "mariadb": "mysql+pymysql",
}

_ENGINE: Optional[Engine] = None
_SESSIONMAKER: Optional[sessionmaker] = None


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def build_database_url(cfg: DatabaseConfig) -> str:
    """Turn the connection options into a SQLAlchemy URL.

    An explicit ``DATABASE_URL`` always wins. SQLite paths are resolved
    relative to the repository root and their directory is created.
    """

    if cfg.url:
        return cfg.url

    kind = (cfg.connection or "").lower().strip()
    if kind == "sqlite":
        path = Path(cfg.database)
        if not path.is_absolute():
            path = _repo_root() / path
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path.as_posix()}"

    driver = _DRIVERS.get(kind)
    if driver is None:
        raise ConfigurationError(f"Unsupported DB_CONNECTION: {cfg.connection!r}")

    url = URL.create(
        driver,
        username=cfg.username or None,
        password=cfg.password or None,
        host=cfg.host or None,
        port=cfg.port,
        database=cfg.database or None,
    )
    return url.render_as_string(hide_password=False)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(database_url: str, *, echo: Optional[bool] = None) -> Engine:
    """Get or create the SQLAlchemy engine.

    The engine is cached; asking for a different URL replaces it. ``echo``
    is applied to the cached engine too; None leaves it as it is.
    """
    global _ENGINE, _SESSIONMAKER

    if _ENGINE is not None:
        if _ENGINE.url.render_as_string(hide_password=False) == database_url:
            if echo is not None:
                _ENGINE.echo = echo
            return _ENGINE
        dispose_engine()

    connect_args = {}
    if database_url.startswith("sqlite:"):
        connect_args = {"check_same_thread": False}

    engine = create_engine(
        database_url,
        echo=bool(echo),
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    if engine.url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    _ENGINE = engine
    _SESSIONMAKER = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine


def get_sessionmaker(database_url: str) -> sessionmaker:
    get_engine(database_url)
    return _SESSIONMAKER


def get_session(database_url: str) -> Session:
    return get_sessionmaker(database_url)()


def dispose_engine() -> None:
    """Close the pooled connections of the cached engine and forget it."""
    global _ENGINE, _SESSIONMAKER

    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSIONMAKER = None


def _is_connection_refused(exc: BaseException) -> bool:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        if getattr(current, "errno", None) == errno.ECONNREFUSED:
            return True
        message = str(current).lower()
        if "connection refused" in message or "econnrefused" in message:
            return True
        current = getattr(current, "orig", None) or current.__cause__
    return False


def connect(cfg: DatabaseConfig) -> Engine:
    """Create the engine and prove the database answers.

    Raises ``DatabaseUnreachableError`` when the server refuses the connection
    and ``DatabaseAuthError`` for any other connection failure.
    """

    database_url = build_database_url(cfg)
    try:
        engine = get_engine(database_url, echo=cfg.logging)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        if cfg.synchronize:
            Base.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        log.exception("Database connection failed")
        dispose_engine()
        if _is_connection_refused(exc):
            raise DatabaseUnreachableError(details=str(exc)) from exc
        raise DatabaseAuthError(details=str(exc)) from exc
    return engine


def database_loader(app: Optional["Application"]) -> None:
    """Boot-time loader: connect and hand the engine to the application."""

    if app is None:
        connect(get_config().database)
        return

    engine = connect(app.config.database)
    app.set_data("connection", engine)
    app.set_data("database_url", engine.url.render_as_string(hide_password=False))
    app.on_shutdown(dispose_engine)
    log.info("Database connected (%s)", engine.url.get_backend_name())
