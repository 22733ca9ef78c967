"""Apply-then-confirm engine for local mutations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from animesync.domain.errors import ConflictError
from animesync.domain.model import new_id
from animesync.domain.outcome import BOUNDARY_ERRORS, Success, failure_from

if TYPE_CHECKING:
    from collections.abc import Callable

    from animesync.domain.outcome import Failure, Outcome
    from animesync.domain.ports import RowStore
    from animesync.domain.sync.cache import LocalCache
    from animesync.domain.sync.mutations import CacheKey, Mutation

    SettleListener = Callable[[CacheKey, bool], None]
    RemovalCheck = Callable[[CacheKey], bool]
    FailureListener = Callable[[Failure], None]

log = getLogger(__name__)


@dataclass(slots=True, eq=False)
class _Entry:
    local_id: str
    mutation: Mutation[Any]
    snapshot: Any
    predicted: Any


@dataclass(slots=True)
class AppliedMutation[T]:
    """Handle returned by :meth:`OptimisticMutationEngine.apply`.

    ``predicted`` is already visible in the cache; ``task`` resolves once the
    backing write has been confirmed or rolled back.
    """

    local_id: str
    predicted: T
    task: asyncio.Task[Outcome[T]] = field(repr=False)

    async def wait(self) -> Outcome[T]:
        return await self.task


class OptimisticMutationEngine:
    """Runs mutations in two phases: local apply, then confirm or roll back.

    Mutations touching the same cache key stack in apply order. Rolling back a
    mutation restores the exact value it replaced; if a later mutation on the
    same key is still pending, that snapshot is handed down to it instead and
    the cache keeps the later prediction.
    """

    def __init__(
        self,
        cache: LocalCache,
        store: RowStore,
        *,
        on_failure: FailureListener | None = None,
    ) -> None:
        self._cache = cache
        self._store = store
        self._on_failure = on_failure
        self._pending: dict[CacheKey, list[_Entry]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._settle_listeners: list[SettleListener] = []
        self._removal_checks: list[RemovalCheck] = []
        self._detached = False

    def add_settle_listener(self, listener: SettleListener) -> None:
        self._settle_listeners.append(listener)

    def add_removal_check(self, check: RemovalCheck) -> None:
        """Register ``check(key)``; a true result skips restoring that cell on rollback."""

        self._removal_checks.append(check)

    def is_pending(self, key: CacheKey) -> bool:
        """Whether ``key`` or any cell nested under it has an unsettled write."""

        size = len(key)
        return any(pending[:size] == key for pending in self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def apply[T](self, mutation: Mutation[T]) -> AppliedMutation[T]:
        """Make the mutation visible locally and schedule its backing write.

        Raises :class:`~animesync.domain.errors.ValidationError` without touching
        the cache when the mutation is refused.
        """

        if self._detached:
            raise RuntimeError("Mutation engine is detached from its scope")
        loop = asyncio.get_running_loop()

        current = mutation.read(self._cache)
        mutation.validate(current)
        predicted = mutation.compute(current)
        mutation.write(self._cache, predicted)

        entry = _Entry(local_id=new_id(), mutation=mutation, snapshot=current, predicted=predicted)
        self._pending.setdefault(mutation.key, []).append(entry)
        log.debug("Applied %s locally as %s", type(mutation).__name__, entry.local_id)

        task = loop.create_task(self._persist(entry), name=f"mutation:{entry.local_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return AppliedMutation(local_id=entry.local_id, predicted=predicted, task=task)

    async def settle(self) -> None:
        """Wait until every scheduled write has been confirmed or rolled back."""

        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def detach(self) -> None:
        """Stop touching the cache; in-flight writes still complete."""

        self._detached = True

    async def _persist(self, entry: _Entry) -> Outcome[Any]:
        mutation = entry.mutation
        try:
            await mutation.persist(self._store, entry.predicted)
        except ConflictError as exc:
            log.info(
                "%s raced another write, keeping local state: %s", type(mutation).__name__, exc
            )
        except BOUNDARY_ERRORS as exc:
            failure = failure_from(exc, mutation.failure_message)
            self._rollback(entry)
            if self._on_failure is not None and not self._detached:
                self._on_failure(failure)
            return failure
        self._confirm(entry)
        return Success(entry.predicted)

    def _confirm(self, entry: _Entry) -> None:
        self._release(entry)
        log.debug("Confirmed %s", entry.local_id)
        self._notify(entry.mutation.key, succeeded=True)

    def _rollback(self, entry: _Entry) -> None:
        key = entry.mutation.key
        stack = self._pending.get(key, [])
        position = stack.index(entry) if entry in stack else -1
        later = stack[position + 1 :] if position >= 0 else []
        if later:
            later[0].snapshot = entry.snapshot
            log.info("Rolled back %s under a newer pending change on %s", entry.local_id, key)
        elif not self._detached:
            self._restore(entry)
        self._release(entry)
        self._notify(key, succeeded=False)

    def _restore(self, entry: _Entry) -> None:
        key = entry.mutation.key
        if any(check(key) for check in self._removal_checks):
            log.info("Dropped rollback of %s, %s was deleted upstream", entry.local_id, key)
            return
        entry.mutation.write(self._cache, entry.snapshot)
        log.info("Rolled back %s on %s", entry.local_id, key)

    def _release(self, entry: _Entry) -> None:
        key = entry.mutation.key
        stack = self._pending.get(key)
        if stack is None:
            return
        if entry in stack:
            stack.remove(entry)
        if not stack:
            del self._pending[key]

    def _notify(self, key: CacheKey, *, succeeded: bool) -> None:
        if self._detached or self.is_pending(key):
            return
        for listener in self._settle_listeners:
            listener(key, succeeded)
