from .mutation_events import (
    MutationConfirmedEvent,
    MutationRejectedEvent,
    MutationRolledBackEvent,
)

__all__ = [
    "MutationConfirmedEvent",
    "MutationRejectedEvent",
    "MutationRolledBackEvent",
]
