"""Signals, synchronization events and their storage."""

from .models import Category, Signal, SignalDraft, SynchronizationEvent
from .parser import SignalParseError, format_signal, parse_draft, parse_signal
from .store import JournalDatabase, SignalStore, StoreError, SyncHistoryStore

__all__ = [
    "Category",
    "JournalDatabase",
    "Signal",
    "SignalDraft",
    "SignalParseError",
    "SignalStore",
    "StoreError",
    "SyncHistoryStore",
    "SynchronizationEvent",
    "format_signal",
    "parse_draft",
    "parse_signal",
]
