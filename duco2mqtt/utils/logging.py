"""Logging setup for the bridge, driven by the ``logging`` config section."""

import logging
import sys
from typing import Optional

from ..config import LoggingConfig

# aiomqtt logs every packet and aiohttp every request; only useful when debugging
NOISY_LOGGERS = ("asyncio", "aiomqtt", "aiohttp")


def _handlers(config: LoggingConfig) -> list[logging.Handler]:
    """Stdout handler, plus a file handler when ``logging.file`` is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.file:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.file))

    formatter = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure application logging.

    Handlers installed by an earlier call are replaced, so calling this
    again does not duplicate output.

    Args:
        config: Logging settings (defaults when omitted)
    """
    config = config or LoggingConfig()

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(config.level)
    for handler in _handlers(config):
        root_logger.addHandler(handler)

    library_level = logging.DEBUG if config.level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    destination = f"stdout and {config.file}" if config.file else "stdout"
    logging.getLogger(__name__).info(f"Logging at {config.level} to {destination}")
