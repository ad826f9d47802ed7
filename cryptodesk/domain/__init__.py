"""Domain layer: immutable records, slice model, error taxonomy, ports.

crypto/  market + account records, mutation events, exceptions, ports
state/   SliceName, SliceState, DomainState
shared/  ValueObject, DomainEvent, DomainException

Nothing here imports application or infrastructure code.
"""

from .shared import DomainEvent, DomainException, ValueObject

__all__ = [
    "DomainEvent",
    "DomainException",
    "ValueObject",
]
