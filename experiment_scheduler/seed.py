from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from experiment_scheduler.repo import get_user, init_db, upsert_user

if TYPE_CHECKING:
    from experiment_scheduler.bootstrap import Application


log = logging.getLogger(__name__)

# Actor recorded for state changes triggered by scheduled jobs.
SYSTEM_USER: Dict[str, Any] = {
    "id": "systemUser",
    "email": "system@gmail.com",
    "first_name": "System",
    "last_name": "User",
    "role": "admin",
}


def seed_system_user(database_url: str) -> Dict[str, Any]:
    existing = get_user(database_url, SYSTEM_USER["id"])
    if existing:
        return existing
    log.info("Seeding system user")
    return upsert_user(
        database_url,
        user_id=SYSTEM_USER["id"],
        email=SYSTEM_USER["email"],
        first_name=SYSTEM_USER["first_name"],
        last_name=SYSTEM_USER["last_name"],
        role=SYSTEM_USER["role"],
    )


def seed_loader(app: Optional["Application"]) -> None:
    if app is None:
        return
    database_url = app.get_data("database_url")
    if not database_url:
        return
    if app.config.database.synchronize:
        init_db(database_url)
    seed_system_user(database_url)
