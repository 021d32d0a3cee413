"""Session manager for per-user journal state and concurrency control."""

import asyncio
from dataclasses import dataclass, field

from ..signals.models import Signal, SignalDraft, SynchronizationEvent

SYNCING_MESSAGE = "Detectando la sincronización..."
IDLE_MESSAGE = "Esperando señales para sincronizar..."


@dataclass
class JournalState:
    """What a user currently sees: draft, signals, history and sync status."""

    user_id: str
    draft: SignalDraft = field(default_factory=SignalDraft)
    signals: list[Signal] = field(default_factory=list)
    history: list[SynchronizationEvent] = field(default_factory=list)
    is_loading: bool = True
    is_syncing: bool = False
    sync_message: str = ""

    def on_signals_changed(self, signals: list[Signal]) -> None:
        """Apply a new snapshot of the signal store."""
        self.signals = list(signals)
        self.is_loading = False

    def on_history_changed(self, history: list[SynchronizationEvent]) -> None:
        """Apply a new snapshot of the history store."""
        self.history = list(history)
        self.is_loading = False

    def begin_sync(self) -> None:
        """An evaluation has been scheduled or is running."""
        self.is_syncing = True
        self.sync_message = SYNCING_MESSAGE

    def finish_sync(self, message: str | None = None) -> None:
        """The evaluation ended; keep the last detection message if any."""
        self.is_syncing = False
        if message is not None:
            self.sync_message = message
        elif self.sync_message == SYNCING_MESSAGE:
            self.sync_message = ""

    def on_cleared(self) -> None:
        """Everything was deleted."""
        self.signals = []
        self.history = []
        self.is_syncing = False
        self.sync_message = ""

    def status_text(self) -> str:
        """Status line for the user."""
        return self.sync_message or IDLE_MESSAGE


class SessionManager:
    """Manages journal state and locks per user."""

    BUSY_MESSAGE = "⏳ Ya estoy trabajando en algo. Espera a que termine."

    def __init__(self) -> None:
        self._states: dict[str, JournalState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._busy: set[str] = set()

    def get_state(self, user_id: str) -> JournalState:
        """Get or create the state for user_id."""
        if user_id not in self._states:
            self._states[user_id] = JournalState(user_id=user_id)
        return self._states[user_id]

    def has_state(self, user_id: str) -> bool:
        return user_id in self._states

    def get_lock(self, user_id: str) -> asyncio.Lock:
        """Get the lock for a user_id."""
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def is_busy(self, user_id: str) -> bool:
        """Check if a user command is currently being processed."""
        return user_id in self._busy

    def try_acquire(self, user_id: str) -> tuple[bool, str | None]:
        """Try to mark the user as busy.

        Returns (acquired, error_message).
        If busy, returns (False, busy_message).
        """
        if self.is_busy(user_id):
            return False, self.BUSY_MESSAGE

        self._busy.add(user_id)
        return True, None

    def release(self, user_id: str) -> None:
        """Release the user after processing."""
        self._busy.discard(user_id)

    def destroy_session(self, user_id: str) -> None:
        """Forget the state of a user."""
        self._states.pop(user_id, None)
        self._busy.discard(user_id)

        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]
