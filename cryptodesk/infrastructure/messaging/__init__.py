"""Messaging infrastructure (in-process event bus)."""

from .event_bus import EventBus, EventHandler

__all__ = ["EventBus", "EventHandler"]
