from __future__ import annotations

from datetime import date
from typing import Optional

import structlog

from .logging_config import setup_logging
from .repositories import get_repository
from .service import TodoService
from .settings import Settings, get_settings

log = structlog.get_logger()


# PUBLIC_INTERFACE
async def bootstrap(
    today: Optional[date] = None,
    settings: Optional[Settings] = None,
    *,
    configure_logging: bool = True,
) -> TodoService:
    """
    Build a ready-to-use TodoService from settings.

    Steps:
    - configure logging (unless configure_logging=False)
    - build the configured repository and create its schema
    - roll overdue pending items into `today` (local date when omitted)

    The caller owns the returned service and should `await service.repository.close()`.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_format)

    repo = get_repository(settings)
    await repo.initialize()

    service = TodoService(repo)
    today = today or date.today()
    moved = await service.rollover_to(today)
    log.info(
        "daybook ready",
        backend=settings.persistence_backend,
        today=today.isoformat(),
        rolled_over=moved,
    )
    return service
