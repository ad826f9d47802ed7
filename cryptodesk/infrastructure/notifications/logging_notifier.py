"""LoggingNotifier - NotifierPort that writes toasts to the log.

Keeps the shown notifications in memory so a host (CLI, tests) can
render or inspect them.
"""

import logging
from typing import Literal, NamedTuple

from cryptodesk.domain.crypto import NotifierPort

logger = logging.getLogger(__name__)


class Notification(NamedTuple):
    level: Literal["success", "error"]
    title: str
    message: str


class LoggingNotifier(NotifierPort):
    def __init__(self, max_history: int = 100) -> None:
        self._max_history = max_history
        self._history: list[Notification] = []

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()

    def success(self, title: str, message: str) -> None:
        logger.info("notification.success", extra={"title": title, "body": message})
        self._record(Notification("success", title, message))

    def error(self, title: str, message: str) -> None:
        logger.warning("notification.error", extra={"title": title, "body": message})
        self._record(Notification("error", title, message))

    def _record(self, notification: Notification) -> None:
        self._history.append(notification)
        if len(self._history) > self._max_history:
            del self._history[: len(self._history) - self._max_history]
