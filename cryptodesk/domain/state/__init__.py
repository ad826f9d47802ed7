"""Aggregated state model: slice names and immutable snapshots."""

from .slices import PRIVATE_SLICES, SCALAR_SLICES, SliceName
from .snapshot import DomainState, SliceState

__all__ = [
    "PRIVATE_SLICES",
    "SCALAR_SLICES",
    "SliceName",
    "DomainState",
    "SliceState",
]
