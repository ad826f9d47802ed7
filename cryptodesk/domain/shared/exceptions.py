"""DomainException family root.

Усі помилки cryptodesk стосуються одного slice або однієї user action;
жодна не зупиняє процес. Keyword context потрапляє і в str(), і в logs.
"""

from typing import Any


class DomainException(Exception):
    """Message plus keyword context.

    Example:
        >>> str(DomainException("Fetch timed out", slice="news", timeout_seconds=10))
        'Fetch timed out (slice=news, timeout_seconds=10)'
    """

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class InvalidStateTransition(DomainException):
    """A state machine was asked for a move it does not allow (programming error)."""
