"""NotifierPort - user-facing toast messages (fire-and-forget)."""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Toast collaborator. Return values are never consumed."""

    @abstractmethod
    def success(self, title: str, message: str) -> None:
        pass

    @abstractmethod
    def error(self, title: str, message: str) -> None:
        pass
