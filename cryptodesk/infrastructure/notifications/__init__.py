from .logging_notifier import LoggingNotifier, Notification

__all__ = ["LoggingNotifier", "Notification"]
