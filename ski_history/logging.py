"""structlog setup for every entry point."""
from __future__ import annotations

import logging as py_logging
from datetime import date
from enum import Enum
from pathlib import PurePath
from typing import Any, MutableMapping, Optional

import structlog

from ski_history.config import LoggingConfig

_configured = False

# Third-party loggers held at WARNING or above.
_NOISY_LOGGERS = ("apscheduler.executors.default", "asyncio")


def _plain_values(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Render paths, enums and dates as their plain string form."""
    for key, value in event_dict.items():
        if isinstance(value, PurePath):
            event_dict[key] = str(value)
        elif isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, date):
            event_dict[key] = value.isoformat()
    return event_dict


def setup_logging(config: Optional[LoggingConfig] = None, *, force: bool = False) -> None:
    """Configure structlog once per process; ``force`` re-applies a loaded config."""
    global _configured
    if _configured and not force:
        return

    config = config or LoggingConfig()
    level = getattr(py_logging, str(config.level).upper(), py_logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _plain_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if config.json else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    py_logging.basicConfig(level=level, format="%(message)s")
    py_logging.getLogger().setLevel(level)
    for name in _NOISY_LOGGERS:
        py_logging.getLogger(name).setLevel(max(level, py_logging.WARNING))
    _configured = True


def get_logger(name: str = __name__):
    if not _configured:
        setup_logging()
    return structlog.get_logger(name, logger_name=name)
