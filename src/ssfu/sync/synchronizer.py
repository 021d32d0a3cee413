"""Debounced, per-user serialized synchronization runs.

Every change of a user's signals reschedules one evaluation after a short
delay. Evaluations of the same user never overlap: the generator call of one
run finishes before the next run starts.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..logging import JSONLLogger, get_logger
from ..signals.models import Signal, SynchronizationEvent
from ..signals.store import StoreError
from .detector import DetectorConfig, SyncCandidate, detect

if TYPE_CHECKING:
    from ..session import SessionManager
    from ..signals.store import SyncHistoryStore
    from .generator import SolutionGenerator

logger = logging.getLogger(__name__)

EventListener = Callable[[SynchronizationEvent], Any]


class DedupPolicy(Enum):
    """What to do when the same pair still qualifies on a later evaluation."""

    ONCE_PER_PAIR = "once_per_pair"
    AT_LEAST_ONCE = "at_least_once"


@dataclass
class SyncConfig:
    """Configuration for the synchronizer."""

    delay_seconds: float = 2.0
    dedup: DedupPolicy = DedupPolicy.ONCE_PER_PAIR

    def __post_init__(self) -> None:
        if isinstance(self.dedup, str):
            self.dedup = DedupPolicy(self.dedup.lower())
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")


class Synchronizer:
    """Runs detection, generation and history writes for each user."""

    def __init__(
        self,
        history: SyncHistoryStore,
        generator: SolutionGenerator,
        sessions: SessionManager,
        config: SyncConfig | None = None,
        detector_config: DetectorConfig | None = None,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        self.history = history
        self.generator = generator
        self.sessions = sessions
        self.config = config or SyncConfig()
        self.detector_config = detector_config or DetectorConfig()
        self.json_logger = json_logger or get_logger()
        self._pending: dict[str, asyncio.Task] = {}
        self._running: dict[str, set[asyncio.Task]] = {}
        self._active: dict[str, int] = {}
        self._messages: dict[str, str] = {}
        self._epochs: dict[str, int] = {}
        self._listeners: list[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        """Call listener (sync or async) with every emitted event."""
        self._listeners.append(listener)

    def is_syncing(self, user_id: str) -> bool:
        """True while an evaluation is scheduled or running for user_id."""
        return user_id in self._pending or self._active.get(user_id, 0) > 0

    def notify(self, user_id: str, signals: Sequence[Signal]) -> asyncio.Task | None:
        """Schedule an evaluation of the latest snapshot.

        Any evaluation still waiting out its delay is abandoned. Nothing is
        scheduled for fewer than two signals, or when no event loop is
        running; the next change made inside a loop schedules it.

        Returns:
            The scheduled task, or None.
        """
        self.cancel(user_id)

        if len(signals) < 2:
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, evaluation for {user_id} deferred")
            return None

        self.sessions.get_state(user_id).begin_sync()
        epoch = self._epochs.get(user_id, 0)
        task = loop.create_task(self._run(user_id, list(signals), epoch))
        self._pending[user_id] = task
        self.json_logger.log("sync_scheduled", user_id=user_id, signals=len(signals))
        return task

    def cancel(self, user_id: str) -> bool:
        """Abandon the evaluation waiting out its delay, if any.

        Evaluations already past the delay run to completion.
        """
        task = self._pending.pop(user_id, None)
        if task is None or task.done():
            return False

        task.cancel()
        self.json_logger.log("sync_cancelled", user_id=user_id)
        if not self.is_syncing(user_id):
            self.sessions.get_state(user_id).finish_sync(self._messages.pop(user_id, None))
        return True

    async def reset(self, user_id: str, clear: Callable[[], Any]) -> Any:
        """Run clear() once no evaluation of user_id is in progress.

        The evaluation in progress finishes first and its event is wiped by
        clear(). Snapshots taken before the reset are never evaluated.

        Returns:
            Whatever clear() returns.
        """
        self.cancel(user_id)
        async with self.sessions.get_lock(user_id):
            self._epochs[user_id] = self._epochs.get(user_id, 0) + 1
            self.cancel(user_id)
            self._messages.pop(user_id, None)
            return clear()

    async def _run(
        self,
        user_id: str,
        signals: list[Signal],
        epoch: int,
    ) -> list[SynchronizationEvent]:
        await asyncio.sleep(self.config.delay_seconds)

        task = asyncio.current_task()
        assert task is not None
        if self._pending.get(user_id) is task:
            del self._pending[user_id]

        running = self._running.setdefault(user_id, set())
        running.add(task)
        try:
            return await self.evaluate(user_id, signals, epoch=epoch)
        finally:
            running.discard(task)

    async def evaluate(
        self,
        user_id: str,
        signals: Sequence[Signal],
        epoch: int | None = None,
    ) -> list[SynchronizationEvent]:
        """Detect, generate and store synchronizations for a snapshot.

        Waits for any evaluation of the same user to finish first.

        Args:
            user_id: Owner of the signals.
            signals: The user's signals in insertion order.
            epoch: Reset count when the snapshot was taken. A snapshot older
                than the last reset is dropped.

        Returns:
            The events stored by this run.
        """
        state = self.sessions.get_state(user_id)
        self._active[user_id] = self._active.get(user_id, 0) + 1
        state.begin_sync()
        emitted: list[SynchronizationEvent] = []

        try:
            async with self.sessions.get_lock(user_id):
                if epoch is not None and epoch != self._epochs.get(user_id, 0):
                    self.json_logger.log("sync_stale_skipped", user_id=user_id)
                    return emitted
                for candidate in detect(signals, self.detector_config):
                    event = await self._emit(user_id, candidate)
                    if event is not None:
                        emitted.append(event)
        finally:
            self._active[user_id] -= 1
            if not self.is_syncing(user_id):
                state.finish_sync(self._messages.pop(user_id, None))

        return emitted

    def _already_emitted(self, user_id: str, candidate: SyncCandidate) -> bool:
        category, contraction_id, expansion_id = candidate.key
        return self.history.exists(user_id, category, contraction_id, expansion_id)

    async def _emit(
        self,
        user_id: str,
        candidate: SyncCandidate,
    ) -> SynchronizationEvent | None:
        """Generate, store and announce one synchronization."""
        if (
            self.config.dedup is DedupPolicy.ONCE_PER_PAIR
            and self._already_emitted(user_id, candidate)
        ):
            self.json_logger.log(
                "sync_duplicate_skipped",
                user_id=user_id,
                category=candidate.category.value,
            )
            return None

        solution = await self.generator.generate(candidate.contraction, candidate.expansion)

        event = SynchronizationEvent(
            message=candidate.message,
            solution=solution.text,
            category=candidate.category,
            contraction_id=candidate.contraction.id,
            expansion_id=candidate.expansion.id,
            user_id=user_id,
        )
        try:
            saved = self.history.append(event)
        except StoreError as e:
            logger.error(f"Could not store synchronization for {user_id}: {e}")
            self.json_logger.log_store_error("append_sync", str(e), user_id=user_id)
            return None

        self._messages[user_id] = candidate.category.status_message
        self.sessions.get_state(user_id).sync_message = candidate.category.status_message
        self.json_logger.log_sync_detected(
            candidate.category.value,
            user_id=user_id,
            sync_id=saved.id,
            contraction_id=saved.contraction_id,
            expansion_id=saved.expansion_id,
            fallback=not solution.ok,
        )
        await self._announce(saved)
        return saved

    async def _announce(self, event: SynchronizationEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Synchronization listener failed")

    async def wait_idle(self, user_id: str) -> None:
        """Wait until nothing is scheduled or running for user_id."""
        while True:
            tasks = set(self._running.get(user_id, set()))
            pending = self._pending.get(user_id)
            if pending is not None:
                tasks.add(pending)
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel everything scheduled or running."""
        tasks = list(self._pending.values())
        for running in self._running.values():
            tasks.extend(running)
        self._pending.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
