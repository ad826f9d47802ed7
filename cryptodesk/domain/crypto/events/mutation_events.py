"""Events emitted by the mutation gateway.

Subscribers (notification handlers) translate them into user-facing toasts.
"""

from dataclasses import dataclass
from typing import Any

from cryptodesk.domain.shared import DomainEvent


@dataclass(frozen=True)
class MutationConfirmedEvent(DomainEvent):
    """Remote call succeeded; optimistic change is now authoritative."""

    mutation_id: str
    action: str
    slice_name: str
    result: Any = None


@dataclass(frozen=True)
class MutationRolledBackEvent(DomainEvent):
    """Remote call failed; the slice was restored."""

    mutation_id: str
    action: str
    slice_name: str
    error: str


@dataclass(frozen=True)
class MutationRejectedEvent(DomainEvent):
    """Action rejected before anything happened (no signed-in user)."""

    action: str
    reason: str
