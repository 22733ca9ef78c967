"""Root logger setup for the animesync entry points."""

from __future__ import annotations

import logging

from .env import optional_env_var

LOG_LEVEL_ENV = "ANIMESYNC_LOG_LEVEL"
# chatty at INFO: one line per request or cache lookup
QUIET_LOGGERS = ("httpx", "httpcore", "hishel")


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger with a terse timestamped format.

    ``level`` wins over ``ANIMESYNC_LOG_LEVEL``, which wins over INFO. Transport
    libraries stay at WARNING unless the resulting level is DEBUG.
    """

    if level is None:
        name = (optional_env_var(LOG_LEVEL_ENV) or "INFO").upper()
        level = logging.getLevelNamesMapping().get(name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(level if level <= logging.DEBUG else logging.WARNING)
