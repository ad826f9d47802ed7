"""Base classes shared by every domain package."""

from .domain_event import DomainEvent
from .exceptions import DomainException, InvalidStateTransition
from .value_object import ValueObject, validate_value_object

__all__ = [
    "ValueObject",
    "validate_value_object",
    "DomainEvent",
    "DomainException",
    "InvalidStateTransition",
]
