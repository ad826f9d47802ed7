"""MutationGateway - optimistic update, remote call, rollback-on-failure.

State machine per mutation:

    IDLE → OPTIMISTICALLY_APPLIED → CONFIRMED
                                  → ROLLED_BACK

CONFIRMED і ROLLED_BACK - terminal, переходів з них немає.

Overlapping mutations on one slice are tracked as an ordered stack:

    slice S0
    M1 starts: pre=S0, apply → S1
    M2 starts: pre=S1 (current, already optimistic), apply → S2
    M2 confirms
    M1 fails  → S0 + effect(M2), not S0 (M2 is not clobbered)

When the failing mutation is the top of its stack, its pre-image is restored
exactly. Otherwise the later entries are replayed on top of the pre-image.
optimistic_update and reconcile must therefore be pure: they take a slice
value and return a new one.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar
from uuid import uuid4

from cryptodesk.domain.crypto import (
    AuthRequiredError,
    FetchTimeoutError,
    IdentityProvider,
    MutationConfirmedEvent,
    MutationError,
    MutationRejectedEvent,
    MutationRolledBackEvent,
)
from cryptodesk.domain.shared import InvalidStateTransition
from cryptodesk.domain.state import SliceName
from cryptodesk.infrastructure.messaging import EventBus

from .store import StateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

OptimisticUpdate = Callable[[Any], Any]
Reconcile = Callable[[Any, Any], Any]


class MutationStatus(str, Enum):
    """Lifecycle of one PendingMutation."""

    IDLE = "idle"
    OPTIMISTICALLY_APPLIED = "optimistically_applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


_ALLOWED_TRANSITIONS: dict[MutationStatus, frozenset[MutationStatus]] = {
    MutationStatus.IDLE: frozenset({MutationStatus.OPTIMISTICALLY_APPLIED}),
    MutationStatus.OPTIMISTICALLY_APPLIED: frozenset(
        {MutationStatus.CONFIRMED, MutationStatus.ROLLED_BACK}
    ),
    MutationStatus.CONFIRMED: frozenset(),
    MutationStatus.ROLLED_BACK: frozenset(),
}


@dataclass(eq=False)
class PendingMutation:
    """In-flight optimistic change of one slice.

    Holds the pre-image (slice value before the change) for rollback.
    """

    action: str
    target: SliceName
    update: OptimisticUpdate
    id: str = field(default_factory=lambda: uuid4().hex)
    pre_image: Any = None
    status: MutationStatus = MutationStatus.IDLE
    abandoned: bool = False
    _reconcile: Reconcile | None = field(default=None, repr=False)
    _result: Any = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return not _ALLOWED_TRANSITIONS[self.status]

    def transition(self, new_status: MutationStatus) -> None:
        """Move to new_status.

        Raises:
            InvalidStateTransition: If the move is not allowed.
        """
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}",
                mutation_id=self.id,
                action=self.action,
            )
        self.status = new_status

    def settle(self, result: Any, reconcile: Reconcile | None) -> None:
        self._result = result
        self._reconcile = reconcile

    def effect(self, value: Any) -> Any:
        """What this mutation does to a slice value (used when replaying)."""
        updated = self.update(value)
        if self.status == MutationStatus.CONFIRMED and self._reconcile is not None:
            return self._reconcile(updated, self._result)
        return updated


@dataclass(frozen=True)
class MutationResult(Generic[T]):
    """Successful mutation outcome."""

    mutation_id: str
    action: str
    target: SliceName
    value: T
    status: MutationStatus = MutationStatus.CONFIRMED


class MutationGateway:
    """Single entry point for state-changing actions.

    Example:
        >>> result = await gateway.mutate(
        ...     "place_order",
        ...     SliceName.OPEN_ORDERS,
        ...     optimistic_update=lambda orders: orders + (provisional,),
        ...     remote_call=lambda: service.place_order(user_id, request),
        ...     reconcile=lambda orders, order: replace_by_id(orders, provisional.id, order),
        ... )
    """

    def __init__(
        self,
        store: StateStore,
        identity: IdentityProvider,
        event_bus: EventBus,
        *,
        timeout: float | None = None,
    ) -> None:
        """Initialize MutationGateway.

        Args:
            store: Store holding the slices being mutated.
            identity: Current user source (auth gate).
            event_bus: Where lifecycle events are published.
            timeout: Remote call timeout in seconds (None = no timeout).
        """
        self._store = store
        self._identity = identity
        self._events = event_bus
        self._timeout = timeout
        self._stacks: dict[SliceName, list[PendingMutation]] = defaultdict(list)

    def pending(self, target: SliceName | None = None) -> list[PendingMutation]:
        """Mutations still tracked (pending, or confirmed above a pending one)."""
        if target is not None:
            return list(self._stacks.get(target, []))
        return [m for stack in self._stacks.values() for m in stack]

    async def ensure_identity(self, action: str) -> str:
        """Auth gate: return current user id or reject the action.

        Raises:
            AuthRequiredError: Nobody signed in (MutationRejectedEvent published).
        """
        user_id = self._identity.current_user_id
        if user_id is None:
            logger.info("mutation.auth_required", extra={"action": action})
            await self._events.publish(
                MutationRejectedEvent(action=action, reason="auth_required")
            )
            raise AuthRequiredError(action)
        return user_id

    async def mutate(
        self,
        action: str,
        target: SliceName,
        optimistic_update: OptimisticUpdate,
        remote_call: Callable[[], Awaitable[T]],
        *,
        reconcile: Reconcile | None = None,
        requires_identity: bool = True,
    ) -> MutationResult[T]:
        """Apply optimistic_update, call remote, confirm or roll back.

        Args:
            action: Action name for logs/notifications (e.g. "place_order").
            target: Affected slice.
            optimistic_update: Pure fn(slice_value) -> new slice value.
            remote_call: Async fn performing the real change.
            reconcile: Pure fn(slice_value, remote_result) -> authoritative
                slice value (replace, not merge). None keeps the optimistic value.
            requires_identity: Reject with AuthRequiredError when signed out.

        Returns:
            MutationResult with the remote result.

        Raises:
            AuthRequiredError: Nobody signed in; state untouched, remote not called.
            MutationError: Remote call failed; slice rolled back.
        """
        if requires_identity:
            await self.ensure_identity(action)

        mutation = PendingMutation(action=action, target=target, update=optimistic_update)

        # 1-2. Capture pre-image from the *current* state and apply synchronously
        mutation.pre_image = self._store.value(target)
        self._store.set_slice(target, optimistic_update(mutation.pre_image))
        mutation.transition(MutationStatus.OPTIMISTICALLY_APPLIED)
        self._stacks[target].append(mutation)

        logger.info(
            "mutation.applied",
            extra={
                "mutation_id": mutation.id,
                "action": action,
                "slice": target.value,
                "stack_depth": len(self._stacks[target]),
            },
        )

        # 3. Remote call
        try:
            result = await self._call_remote(remote_call, action)
        except asyncio.CancelledError:
            self._roll_back(mutation)
            raise
        except Exception as e:
            # 5. Failure → rollback, typed error
            self._roll_back(mutation)
            error = MutationError(action, e, mutation_id=mutation.id)
            logger.warning(
                "mutation.rolled_back",
                extra={
                    "mutation_id": mutation.id,
                    "action": action,
                    "slice": target.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            await self._events.publish(
                MutationRolledBackEvent(
                    mutation_id=mutation.id,
                    action=action,
                    slice_name=target.value,
                    error=str(e),
                )
            )
            raise error from e

        # 4. Success → optional reconcile
        self._confirm(mutation, result, reconcile)
        logger.info(
            "mutation.confirmed",
            extra={"mutation_id": mutation.id, "action": action, "slice": target.value},
        )
        await self._events.publish(
            MutationConfirmedEvent(
                mutation_id=mutation.id,
                action=action,
                slice_name=target.value,
                result=result,
            )
        )
        return MutationResult(
            mutation_id=mutation.id,
            action=action,
            target=target,
            value=result,
        )

    def abandon(self, targets: Iterable[SliceName]) -> int:
        """Detach in-flight mutations of these slices.

        Their resolution will no longer write to the store (used when the
        user signs out and private slices were cleared).

        Returns:
            Number of detached mutations.
        """
        count = 0
        for target in targets:
            stack = self._stacks.pop(target, [])
            for mutation in stack:
                mutation.abandoned = True
                count += 1
        if count:
            logger.info("mutation.abandoned", extra={"count": count})
        return count

    async def _call_remote(self, remote_call: Callable[[], Awaitable[T]], action: str) -> T:
        if self._timeout is None:
            return await remote_call()
        try:
            return await asyncio.wait_for(remote_call(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(
                "Remote call timed out", action=action, timeout_seconds=self._timeout
            ) from e

    def _confirm(self, mutation: PendingMutation, result: Any, reconcile: Reconcile | None) -> None:
        mutation.transition(MutationStatus.CONFIRMED)
        mutation.settle(result, reconcile)
        if mutation.abandoned:
            return

        stack = self._stacks[mutation.target]
        index = stack.index(mutation)
        later = stack[index + 1:]

        if reconcile is not None:
            if later:
                # Rebase later optimistic entries on the authoritative value
                value = self._replay(mutation.effect(mutation.pre_image), later)
            else:
                value = reconcile(self._store.value(mutation.target), result)
            self._store.set_slice(mutation.target, value)

        self._prune(mutation.target)

    def _roll_back(self, mutation: PendingMutation) -> None:
        mutation.transition(MutationStatus.ROLLED_BACK)
        if mutation.abandoned:
            return

        stack = self._stacks[mutation.target]
        index = stack.index(mutation)
        later = stack[index + 1:]
        del stack[index]

        if later:
            value = self._replay(mutation.pre_image, later)
        else:
            # Exact pre-image
            value = mutation.pre_image
        self._store.set_slice(mutation.target, value)
        self._prune(mutation.target)

    @staticmethod
    def _replay(base: Any, entries: list[PendingMutation]) -> Any:
        value = base
        for entry in entries:
            entry.pre_image = value
            value = entry.effect(value)
        return value

    def _prune(self, target: SliceName) -> None:
        stack = self._stacks[target]
        while stack and stack[0].is_terminal:
            stack.pop(0)
        if not stack:
            del self._stacks[target]
