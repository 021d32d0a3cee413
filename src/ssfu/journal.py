"""Journal service: stores, per-user state and synchronization wired together."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .config import SsfuConfig
from .llm import LLMClient, build_llm_client
from .logging import JSONLLogger, get_logger
from .session import JournalState, SessionManager
from .signals.models import Signal, SignalDraft, SynchronizationEvent
from .signals.store import JournalDatabase, StoreError
from .sync.generator import SolutionGenerator
from .sync.synchronizer import Synchronizer

logger = logging.getLogger(__name__)


class Journal:
    """Entry point for every user operation.

    Each opened user is subscribed to both stores: signal changes update the
    user's state and reschedule synchronization, history changes update the
    state only.
    """

    def __init__(
        self,
        db: JournalDatabase,
        synchronizer: Synchronizer,
        sessions: SessionManager,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        self.db = db
        self.synchronizer = synchronizer
        self.sessions = sessions
        self.json_logger = json_logger or get_logger()
        self._unsubscribers: dict[str, list[Callable[[], None]]] = {}

    @classmethod
    def from_config(
        cls,
        config: SsfuConfig,
        llm: LLMClient | None = None,
        json_logger: JSONLLogger | None = None,
    ) -> Journal:
        """Build a journal with its database, generator and synchronizer.

        Args:
            config: Paths, provider and synchronization settings.
            llm: Client used for solutions, built from config if None.
            json_logger: Event sink, the global logger if None.
        """
        assert config.db_path is not None
        db = JournalDatabase(config.db_path)
        db.init_db()

        json_logger = json_logger or get_logger()
        if llm is None:
            llm = build_llm_client(
                config.llm_provider,
                model=config.model,
                api_key=config.api_key,
                timeout=config.generator_timeout,
            )
        generator = SolutionGenerator(
            llm, timeout=config.generator_timeout, json_logger=json_logger
        )
        sessions = SessionManager()
        synchronizer = Synchronizer(
            db.history,
            generator,
            sessions,
            config=config.sync,
            detector_config=config.detector,
            json_logger=json_logger,
        )
        return cls(db, synchronizer, sessions, json_logger=json_logger)

    def open_user(self, user_id: str) -> JournalState:
        """Subscribe a user to store changes and load the current snapshot.

        Calling it again for an open user only returns its state.
        """
        state = self.sessions.get_state(user_id)
        if user_id in self._unsubscribers:
            return state

        def on_signals(signals: list[Signal]) -> None:
            state.on_signals_changed(signals)
            self.synchronizer.notify(user_id, signals)

        self._unsubscribers[user_id] = [
            self.db.signals.subscribe(user_id, on_signals),
            self.db.history.subscribe(user_id, state.on_history_changed),
        ]
        self.json_logger.log("session_start", user_id=user_id)

        state.on_history_changed(self.db.history.list(user_id))
        on_signals(self.db.signals.list(user_id))
        return state

    def close_user(self, user_id: str) -> None:
        """Stop following a user's changes and forget its state."""
        for unsubscribe in self._unsubscribers.pop(user_id, []):
            unsubscribe()
        self.synchronizer.cancel(user_id)
        self.sessions.destroy_session(user_id)
        self.json_logger.log("session_end", user_id=user_id)

    def state(self, user_id: str) -> JournalState:
        return self.open_user(user_id)

    def signals(self, user_id: str) -> list[Signal]:
        return self.db.signals.list(user_id)

    def history(self, user_id: str) -> list[SynchronizationEvent]:
        return self.db.history.list(user_id)

    async def add_signal(
        self,
        user_id: str,
        signal: Signal | SignalDraft | None = None,
    ) -> Signal | None:
        """Store a new signal for a user.

        Args:
            user_id: Owner of the signal.
            signal: What to store. The user's current draft if None.

        Returns:
            The stored signal, or None if it had no text or the write failed.
            The draft is reset only after a successful write.
        """
        state = self.open_user(user_id)
        draft = state.draft if signal is None else signal

        if isinstance(draft, SignalDraft):
            if draft.is_empty():
                self.json_logger.log("signal_rejected", user_id=user_id, reason="empty")
                return None
            candidate = draft.to_signal(user_id)
        else:
            if not (draft.text or "").strip():
                self.json_logger.log("signal_rejected", user_id=user_id, reason="empty")
                return None
            candidate = Signal(
                text=draft.text,
                thought=draft.thought,
                feeling=draft.feeling,
                body_sensation=draft.body_sensation,
                category=draft.category,
                user_id=user_id,
            )

        try:
            saved = self.db.signals.append(candidate)
        except StoreError as e:
            logger.error(f"Error adding signal for {user_id}: {e}")
            self.json_logger.log_store_error("append_signal", str(e), user_id=user_id)
            return None

        if signal is None:
            state.draft.reset()

        self.json_logger.log_signal_added(saved.id, saved.category.value, user_id=user_id)
        return saved

    async def clear(self, user_id: str) -> bool:
        """Delete every signal and synchronization of a user.

        An evaluation already generating a solution finishes first, so its
        event is deleted too.

        Returns:
            True on success. On failure nothing is deleted.
        """
        state = self.open_user(user_id)

        try:
            signals, events = await self.synchronizer.reset(
                user_id, lambda: self.db.clear_user(user_id)
            )
        except StoreError as e:
            logger.error(f"Error clearing journal for {user_id}: {e}")
            self.json_logger.log_store_error("clear", str(e), user_id=user_id)
            return False

        state.on_cleared()
        self.json_logger.log(
            "journal_cleared", user_id=user_id, signals=signals, events=events
        )
        return True

    async def close(self) -> None:
        """Cancel pending work, drop subscriptions and close the database."""
        await self.synchronizer.shutdown()
        for user_id in list(self._unsubscribers):
            for unsubscribe in self._unsubscribers.pop(user_id):
                unsubscribe()
        self.db.close()
