"""ValueObject: base of every record stored in a state slice.

Records are frozen and compared by value; a slice changes only by putting
a new value in place of the old one.
"""

from abc import ABC
from dataclasses import dataclass


@dataclass(frozen=True)
class ValueObject(ABC):
    """Frozen dataclass base. Subclasses validate in __post_init__.

    Example:
        >>> @dataclass(frozen=True)
        ... class Ticker(ValueObject):
        ...     symbol: str
        ...     price: Decimal
        >>> Ticker("BTCUSDT", Decimal("1")) == Ticker("BTCUSDT", Decimal("1"))
        True
    """

    def __post_init__(self) -> None:
        pass


def validate_value_object(condition: bool, message: str) -> None:
    """Raise ValueError(message) unless condition holds."""
    if not condition:
        raise ValueError(message)
