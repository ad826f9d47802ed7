"""Exceptions для Crypto bounded context.

Propagation policy:
    SliceLoadError, StaleWriteDiscarded - handled inside the aggregator, logged.
    MutationError, AuthRequiredError    - surfaced to the UI layer.
"""

from typing import Any

from cryptodesk.domain.shared import DomainException


class SliceLoadError(DomainException):
    """One slice failed to load; isolated to that slice."""

    def __init__(self, slice_name: str, cause: BaseException, **context: Any) -> None:
        super().__init__(
            f"Failed to load slice {slice_name}: {cause}",
            slice=slice_name,
            **context,
        )
        self.slice_name = slice_name
        self.cause = cause


class FetchTimeoutError(DomainException):
    """Remote fetch exceeded its timeout. Treated as a normal failure."""

    pass


class StaleWriteDiscarded(DomainException):
    """Result of a superseded load generation arrived late and was dropped.

    Not user visible - internal outcome of the generation guard.
    """

    def __init__(self, slice_name: str, generation: int, current_generation: int) -> None:
        super().__init__(
            "Stale write discarded",
            slice=slice_name,
            generation=generation,
            current_generation=current_generation,
        )
        self.slice_name = slice_name
        self.generation = generation


class MutationError(DomainException):
    """State-changing action failed after optimistic application.

    Raised after the slice was rolled back.
    """

    def __init__(self, action: str, cause: BaseException, **context: Any) -> None:
        super().__init__(f"{action} failed: {cause}", action=action, **context)
        self.action = action
        self.cause = cause


class AuthRequiredError(DomainException):
    """Action needs a signed-in user and none is present.

    Raised before any optimistic update or remote call.
    """

    def __init__(self, action: str) -> None:
        super().__init__("Sign in required", action=action)
        self.action = action


class MarketDataUnavailableError(DomainException):
    """Market data provider failed and there is no cached copy."""

    pass


class StakingProductNotFoundError(DomainException):
    """Staking product id is unknown to the service."""

    pass


class OrderNotFoundError(DomainException):
    pass
