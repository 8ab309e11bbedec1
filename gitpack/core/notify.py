"""
User notifications.

Progress and error messages shown to the user share one channel. Info
messages respect the `silent` setting, warnings and errors are always shown.
"""

import logging


class Notifier:
    """Send prefixed notifications through the `gitpack` logger."""

    prefix = "(gitpack) "

    def __init__(self, silent: bool = False, logger: logging.Logger | None = None):
        self.silent = silent
        self.logger = logger or logging.getLogger("gitpack")

    def info(self, msg: str) -> None:
        if self.silent:
            return
        self.logger.info(self.prefix + msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(self.prefix + msg)

    def error(self, msg: str) -> None:
        self.logger.error(self.prefix + msg)
