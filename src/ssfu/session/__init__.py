"""Per-user journal state and locks."""

from .manager import IDLE_MESSAGE, SYNCING_MESSAGE, JournalState, SessionManager

__all__ = ["IDLE_MESSAGE", "JournalState", "SYNCING_MESSAGE", "SessionManager"]
