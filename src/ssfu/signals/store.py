"""SQLite storage for signals and synchronization history."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .models import Category, Signal, SynchronizationEvent

logger = logging.getLogger(__name__)

# Millisecond resolution so events created in the same second keep their order
_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

SignalsCallback = Callable[[list[Signal]], Any]
HistoryCallback = Callable[[list[SynchronizationEvent]], Any]


class StoreError(Exception):
    """Raised when a write to the journal database fails."""

    pass


class _Subscriptions:
    """Per-user change listeners for one collection."""

    def __init__(self) -> None:
        self._callbacks: dict[str, list[Callable[[list[Any]], Any]]] = {}

    def add(self, user_id: str, callback: Callable[[list[Any]], Any]) -> Callable[[], None]:
        callbacks = self._callbacks.setdefault(user_id, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def has(self, user_id: str) -> bool:
        return bool(self._callbacks.get(user_id))

    def notify(self, user_id: str, snapshot: list[Any]) -> None:
        for callback in list(self._callbacks.get(user_id, [])):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Subscriber failed for user %s", user_id)


class JournalDatabase:
    """Owns the SQLite connection shared by both stores.

    Signals and synchronization events live in the same database file so
    that a user's journal can be cleared in a single transaction.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database with a file path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self.signals = SignalStore(self)
        self.history = SyncHistoryStore(self)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the tables if they don't exist."""
        conn = self._get_connection()
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS signals (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id         TEXT NOT NULL,
                text            TEXT NOT NULL DEFAULT '',
                thought         TEXT NOT NULL DEFAULT '',
                feeling         TEXT NOT NULL DEFAULT '',
                body_sensation  TEXT NOT NULL DEFAULT '',
                category        TEXT NOT NULL,
                created_at      TEXT NOT NULL DEFAULT ({_NOW})
            )
        """)
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS sync_history (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id         TEXT NOT NULL,
                message         TEXT NOT NULL,
                solution        TEXT NOT NULL,
                category        TEXT NOT NULL,
                contraction_id  INTEGER,
                expansion_id    INTEGER,
                created_at      TEXT NOT NULL DEFAULT ({_NOW})
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_signals_user ON signals(user_id)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_sync_history_user ON sync_history(user_id)"
        )
        conn.commit()

    def write(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Row | None:
        """Run one write statement in its own transaction.

        Raises:
            StoreError: If SQLite rejects the write. Nothing is committed.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(sql, params)
            row = cursor.fetchone()
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Write failed: {e}") from e
        return row

    def clear_user(self, user_id: str) -> tuple[int, int]:
        """Delete every signal and synchronization event of a user atomically.

        Args:
            user_id: The owner whose journal is cleared.

        Returns:
            Tuple of (signals deleted, events deleted).

        Raises:
            StoreError: If the transaction fails. Nothing is deleted.
        """
        conn = self._get_connection()
        try:
            with conn:
                signals = conn.execute(
                    "DELETE FROM signals WHERE user_id = ?", (user_id,)
                ).rowcount
                events = conn.execute(
                    "DELETE FROM sync_history WHERE user_id = ?", (user_id,)
                ).rowcount
        except sqlite3.Error as e:
            raise StoreError(f"Clear failed: {e}") from e

        self.signals.notify(user_id)
        self.history.notify(user_id)
        return signals, events

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class SignalStore:
    """Append-only collection of signals, ordered by insertion."""

    def __init__(self, db: JournalDatabase) -> None:
        self.db = db
        self._subscriptions = _Subscriptions()

    def append(self, signal: Signal) -> Signal:
        """Save a signal.

        Args:
            signal: The signal to save. Its user_id must be set.

        Returns:
            The signal with its assigned id and timestamp.

        Raises:
            ValueError: If the signal has no owner.
            StoreError: If the write fails.
        """
        if not signal.user_id:
            raise ValueError("Signal has no user_id")

        row = self.db.write(
            """
            INSERT INTO signals (user_id, text, thought, feeling, body_sensation, category)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id, created_at
            """,
            (
                signal.user_id,
                signal.text or "",
                signal.thought or "",
                signal.feeling or "",
                signal.body_sensation or "",
                signal.category.value,
            ),
        )
        assert row is not None
        saved = Signal(
            text=signal.text or "",
            thought=signal.thought or "",
            feeling=signal.feeling or "",
            body_sensation=signal.body_sensation or "",
            category=signal.category,
            id=row["id"],
            user_id=signal.user_id,
            timestamp=row["created_at"],
        )
        self.notify(signal.user_id)
        return saved

    def list(self, user_id: str) -> list[Signal]:
        """Get all signals of a user in insertion order."""
        conn = self.db._get_connection()
        cursor = conn.execute(
            """
            SELECT id, user_id, text, thought, feeling, body_sensation, category, created_at
            FROM signals WHERE user_id = ? ORDER BY id
            """,
            (user_id,),
        )
        return [self._row_to_signal(row) for row in cursor.fetchall()]

    def delete_all(self, user_id: str) -> int:
        """Delete every signal of a user.

        Returns:
            Number of signals deleted.
        """
        conn = self.db._get_connection()
        try:
            with conn:
                count = conn.execute(
                    "DELETE FROM signals WHERE user_id = ?", (user_id,)
                ).rowcount
        except sqlite3.Error as e:
            raise StoreError(f"Delete failed: {e}") from e
        self.notify(user_id)
        return count

    def subscribe(self, user_id: str, callback: SignalsCallback) -> Callable[[], None]:
        """Call callback with the full ordered snapshot after every change.

        Returns:
            A function that removes the subscription.
        """
        return self._subscriptions.add(user_id, callback)

    def notify(self, user_id: str) -> None:
        """Push the current snapshot to the user's subscribers."""
        if self._subscriptions.has(user_id):
            self._subscriptions.notify(user_id, self.list(user_id))

    def _row_to_signal(self, row: sqlite3.Row) -> Signal:
        """Convert a database row to a Signal."""
        return Signal(
            text=row["text"],
            thought=row["thought"],
            feeling=row["feeling"],
            body_sensation=row["body_sensation"],
            category=Category(row["category"]),
            id=row["id"],
            user_id=row["user_id"],
            timestamp=row["created_at"],
        )


class SyncHistoryStore:
    """Append-only collection of synchronization events."""

    def __init__(self, db: JournalDatabase) -> None:
        self.db = db
        self._subscriptions = _Subscriptions()

    def append(self, event: SynchronizationEvent) -> SynchronizationEvent:
        """Save a synchronization event.

        Raises:
            ValueError: If the event has no owner.
            StoreError: If the write fails.
        """
        if not event.user_id:
            raise ValueError("Event has no user_id")

        row = self.db.write(
            """
            INSERT INTO sync_history
                (user_id, message, solution, category, contraction_id, expansion_id)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id, created_at
            """,
            (
                event.user_id,
                event.message,
                event.solution,
                event.category.value,
                event.contraction_id,
                event.expansion_id,
            ),
        )
        assert row is not None
        saved = SynchronizationEvent(
            message=event.message,
            solution=event.solution,
            category=event.category,
            contraction_id=event.contraction_id,
            expansion_id=event.expansion_id,
            id=row["id"],
            user_id=event.user_id,
            timestamp=row["created_at"],
        )
        self.notify(event.user_id)
        return saved

    def list(self, user_id: str) -> list[SynchronizationEvent]:
        """Get all events of a user, newest first."""
        conn = self.db._get_connection()
        cursor = conn.execute(
            """
            SELECT id, user_id, message, solution, category,
                   contraction_id, expansion_id, created_at
            FROM sync_history WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (user_id,),
        )
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def exists(
        self,
        user_id: str,
        category: Category,
        contraction_id: int | None,
        expansion_id: int | None,
    ) -> bool:
        """Check whether this signal pair already produced an event."""
        conn = self.db._get_connection()
        cursor = conn.execute(
            """
            SELECT 1 FROM sync_history
            WHERE user_id = ? AND category = ?
              AND contraction_id IS ? AND expansion_id IS ?
            LIMIT 1
            """,
            (user_id, category.value, contraction_id, expansion_id),
        )
        return cursor.fetchone() is not None

    def delete_all(self, user_id: str) -> int:
        """Delete every event of a user.

        Returns:
            Number of events deleted.
        """
        conn = self.db._get_connection()
        try:
            with conn:
                count = conn.execute(
                    "DELETE FROM sync_history WHERE user_id = ?", (user_id,)
                ).rowcount
        except sqlite3.Error as e:
            raise StoreError(f"Delete failed: {e}") from e
        self.notify(user_id)
        return count

    def subscribe(self, user_id: str, callback: HistoryCallback) -> Callable[[], None]:
        """Call callback with the newest-first snapshot after every change."""
        return self._subscriptions.add(user_id, callback)

    def notify(self, user_id: str) -> None:
        """Push the current snapshot to the user's subscribers."""
        if self._subscriptions.has(user_id):
            self._subscriptions.notify(user_id, self.list(user_id))

    def _row_to_event(self, row: sqlite3.Row) -> SynchronizationEvent:
        """Convert a database row to a SynchronizationEvent."""
        return SynchronizationEvent(
            message=row["message"],
            solution=row["solution"],
            category=Category(row["category"]),
            contraction_id=row["contraction_id"],
            expansion_id=row["expansion_id"],
            id=row["id"],
            user_id=row["user_id"],
            timestamp=row["created_at"],
        )
