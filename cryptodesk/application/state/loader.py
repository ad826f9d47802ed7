"""Loader - fan-out/fan-in population of DomainState.

load_all() issues all fetches concurrently and resolves once every fetch has
settled. Кожен slice пишеться незалежно: failure одного slice не блокує
інші і не reject-ить load_all.

Generation guard:
    Every call takes the next generation number and claims the slices it
    fetches. A result is written only while its generation still owns the
    slice, so an older, slower load never overwrites a newer one:

    L1 (gen 1) starts ─────────────────────────────┐ resolves late → discarded
    L2 (gen 2) starts ──────────┐ resolves → written
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Any, Awaitable, Callable, Iterable, Sequence

from cryptodesk.domain.crypto import (
    FetchTimeoutError,
    IdentityProvider,
    SliceLoadError,
    StaleWriteDiscarded,
)
from cryptodesk.domain.state import SliceName

from .store import StateStore

logger = logging.getLogger(__name__)

# fetch(user_id) - user_id is None for public slices
SliceFetchFn = Callable[[str | None], Awaitable[Any]]


class LoadScope(Flag):
    """Which part of the fetch plan a load covers."""

    PUBLIC = auto()
    PRIVATE = auto()
    ALL = PUBLIC | PRIVATE


@dataclass(frozen=True)
class SliceFetch:
    """One entry of the fetch plan.

    on_demand entries are skipped by load_all() and fetched only through
    load_slices() (e.g. P2P offers, loaded when the marketplace opens).
    """

    name: SliceName
    fetch: SliceFetchFn
    on_demand: bool = False

    @property
    def private(self) -> bool:
        return self.name.is_private


@dataclass
class LoadReport:
    """Outcome of one load_all() call.

    Attributes:
        generation: Generation number of the call.
        loaded: Slices written by this call.
        failed: Slices whose fetch failed (error flag set on the slice).
        discarded: Slices whose result arrived after a newer generation claimed them.
        skipped: Private slices not fetched because nobody is signed in.
    """

    generation: int
    loaded: list[SliceName] = field(default_factory=list)
    failed: dict[SliceName, SliceLoadError] = field(default_factory=dict)
    discarded: list[SliceName] = field(default_factory=list)
    skipped: list[SliceName] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class Loader:
    """Loads a fixed plan of slices into a StateStore.

    Example:
        >>> loader = Loader(store, plan, identity, timeout=10.0)
        >>> report = await loader.load_all()
        >>> report.failed
        {<SliceName.NEWS: 'news'>: SliceLoadError(...)}
    """

    def __init__(
        self,
        store: StateStore,
        plan: Sequence[SliceFetch],
        identity: IdentityProvider,
        *,
        timeout: float | None = None,
    ) -> None:
        """Initialize Loader.

        Args:
            store: Target store.
            plan: Slices to fetch; private entries need a signed-in user.
            identity: Current user source.
            timeout: Per-fetch timeout in seconds (None = no timeout).
        """
        self._store = store
        self._plan = tuple(plan)
        self._identity = identity
        self._timeout = timeout
        self._generation = 0
        # slice -> generation allowed to write it
        self._owners: dict[SliceName, int] = {}

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def plan(self) -> tuple[SliceFetch, ...]:
        return self._plan

    async def load_all(self, scope: LoadScope = LoadScope.ALL) -> LoadReport:
        """Fetch every slice in scope concurrently.

        Never raises for slice failures; see LoadReport.failed.
        """

        def in_scope(item: SliceFetch) -> bool:
            if item.on_demand:
                return False
            if item.private:
                return bool(scope & LoadScope.PRIVATE)
            return bool(scope & LoadScope.PUBLIC)

        return await self._run([item for item in self._plan if in_scope(item)])

    async def load_slices(self, names: Iterable[SliceName]) -> LoadReport:
        """Fetch only the named plan entries (same guard and failure policy).

        Raises:
            KeyError: If a name is not part of the plan.
        """
        by_name = {item.name: item for item in self._plan}
        return await self._run([by_name[name] for name in names])

    async def _run(self, items: list[SliceFetch]) -> LoadReport:
        self._generation += 1
        generation = self._generation
        user_id = self._identity.current_user_id
        report = LoadReport(generation=generation)

        batch: list[SliceFetch] = []
        for item in items:
            if item.private and user_id is None:
                report.skipped.append(item.name)
                continue
            self._owners[item.name] = generation
            batch.append(item)

        logger.info(
            "loader.started",
            extra={
                "generation": generation,
                "slices": [item.name.value for item in batch],
                "signed_in": user_id is not None,
            },
        )

        await asyncio.gather(
            *(self._load_slice(item, generation, user_id, report) for item in batch)
        )

        logger.info(
            "loader.completed",
            extra={
                "generation": generation,
                "loaded": len(report.loaded),
                "failed": [name.value for name in report.failed],
                "discarded": [name.value for name in report.discarded],
            },
        )
        return report

    def invalidate(self, names: Iterable[SliceName]) -> None:
        """Make in-flight results for these slices stale.

        Used on sign-out so a late private response can't refill cleared slices.
        """
        self._generation += 1
        for name in names:
            self._owners[name] = self._generation

    def _check_owner(self, name: SliceName, generation: int) -> None:
        current = self._owners.get(name, 0)
        if current != generation:
            raise StaleWriteDiscarded(name.value, generation, current)

    async def _fetch(self, item: SliceFetch, user_id: str | None) -> Any:
        if self._timeout is None:
            return await item.fetch(user_id)
        try:
            return await asyncio.wait_for(item.fetch(user_id), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(
                "Fetch timed out",
                slice=item.name.value,
                timeout_seconds=self._timeout,
            ) from e

    async def _load_slice(
        self,
        item: SliceFetch,
        generation: int,
        user_id: str | None,
        report: LoadReport,
    ) -> None:
        try:
            value = await self._fetch(item, user_id)
        except Exception as e:
            error = SliceLoadError(item.name.value, e, generation=generation)
            try:
                self._check_owner(item.name, generation)
            except StaleWriteDiscarded as stale:
                self._discard(stale, report)
                return

            self._store.mark_error(item.name, str(error))
            report.failed[item.name] = error
            logger.warning(
                "loader.slice_failed",
                extra={
                    "slice": item.name.value,
                    "generation": generation,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return

        try:
            self._check_owner(item.name, generation)
        except StaleWriteDiscarded as stale:
            self._discard(stale, report)
            return

        self._store.set_slice(item.name, value)
        report.loaded.append(item.name)

    def _discard(self, stale: StaleWriteDiscarded, report: LoadReport) -> None:
        report.discarded.append(SliceName(stale.slice_name))
        logger.debug(
            "loader.stale_write_discarded",
            extra={
                "slice": stale.slice_name,
                "generation": stale.generation,
                "current_generation": stale.context["current_generation"],
            },
        )
