"""SliceState / DomainState - immutable snapshots of aggregated state.

A reader (UI render) keeps whatever DomainState it got from the store; a
later set_slice builds a new snapshot and never touches the old one.
"""

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .slices import SliceName


@dataclass(frozen=True)
class SliceState:
    """One slice: value + load metadata.

    Attributes:
        name: Slice name.
        value: Full slice value (immutable record, tuple or None).
        loaded: True once any value was written.
        error: Message of the last failed refresh, None after a successful write.
        version: Per-slice write counter.
        updated_at: When value was last replaced.
    """

    name: SliceName
    value: Any
    loaded: bool = False
    error: str | None = None
    version: int = 0
    updated_at: datetime | None = None

    @classmethod
    def empty(cls, name: SliceName) -> "SliceState":
        return cls(name=name, value=name.empty_value)

    @property
    def has_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class DomainState:
    """Consolidated view of all slices for one UI view.

    Example:
        >>> state = store.get()
        >>> state.value(SliceName.OPEN_ORDERS)
        (Order(id='order-1', ...),)
        >>> state.error(SliceName.NEWS)
        'Failed to load slice news: timeout'
    """

    slices: Mapping[SliceName, SliceState]
    version: int = 0

    @classmethod
    def build(cls, slices: Mapping[SliceName, SliceState], version: int) -> "DomainState":
        return cls(slices=MappingProxyType(dict(slices)), version=version)

    def __getitem__(self, name: SliceName) -> SliceState:
        return self.slices[name]

    def __iter__(self) -> Iterator[SliceState]:
        return iter(self.slices.values())

    def value(self, name: SliceName) -> Any:
        return self.slices[name].value

    def error(self, name: SliceName) -> str | None:
        return self.slices[name].error

    def is_loaded(self, name: SliceName) -> bool:
        return self.slices[name].loaded

    def values(self) -> dict[SliceName, Any]:
        """Plain name -> value mapping (handy for comparisons and rendering)."""
        return {name: s.value for name, s in self.slices.items()}
