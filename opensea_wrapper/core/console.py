"""Leveled console output"""
import logging
import sys
from typing import Optional

from opensea_wrapper.core.config import Settings, settings as default_settings

logger = logging.getLogger("opensea_wrapper")


def configure_logging(config: Optional[Settings] = None) -> None:
    """Send package logs to stdout at LOG_LEVEL (DEBUG when APP_DEBUG is on)."""
    config = config or default_settings
    level = logging.DEBUG if config.APP_DEBUG else config.LOG_LEVEL.upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S"))

    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False


class ConsoleOutput:
    """
    info / comment / warn / error / debug lines on the package logger.

    Debug lines are dropped unless the debug flag is on, independently of
    the logger level, so a verbose LOG_LEVEL does not leak request dumps.
    """

    def __init__(self, debug: Optional[bool] = None, name: str = "opensea_wrapper"):
        self.debug_enabled = default_settings.APP_DEBUG if debug is None else debug
        self.logger = logging.getLogger(name)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def comment(self, message: str) -> None:
        self.logger.info(f"# {message}")

    def warn(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def debug(self, message: str) -> None:
        if not self.debug_enabled:
            return
        # The instance flag wins over a logger configured above DEBUG
        self.logger.log(max(logging.DEBUG, self.logger.getEffectiveLevel()), message)
