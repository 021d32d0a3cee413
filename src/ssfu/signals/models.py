"""Data models for signals and synchronization events."""

from dataclasses import dataclass
from enum import Enum


class Category(Enum):
    """Independent detection stream a signal belongs to.

    The value is the identifier persisted in the store.
    """

    PERSONAL = "Personal"
    FINANCIAL = "Financiero"

    @property
    def tag(self) -> str:
        """Uppercase tag used in synchronization messages."""
        return self.value.upper()

    @property
    def message(self) -> str:
        """Message stored with every synchronization of this category."""
        return (
            f"[{self.tag}] ¡Dualidad de resonancia detectada! La contracción del "
            f"{_SCOPES[self]} se ha sincronizado con la expansión."
        )

    @property
    def status_message(self) -> str:
        """Short status shown once a synchronization is detected."""
        return _STATUS_MESSAGES[self]

    @classmethod
    def parse(cls, value: "str | Category") -> "Category":
        """Parse a category from its value, member name or alias.

        Raises:
            ValueError: If the value does not name a known category.
        """
        if isinstance(value, Category):
            return value

        normalized = value.strip().lower()
        for category in cls:
            if normalized in (category.value.lower(), category.name.lower()):
                return category

        if normalized in _ALIASES:
            return _ALIASES[normalized]

        raise ValueError(f"Unknown category: {value!r}")


_SCOPES = {
    Category.PERSONAL: "universo personal",
    Category.FINANCIAL: "mercado",
}

_STATUS_MESSAGES = {
    Category.PERSONAL: "¡Sincronización personal detectada! El flujo se ha revelado.",
    Category.FINANCIAL: "¡Sincronización financiera detectada! El flujo se ha revelado.",
}

_ALIASES = {
    "financiera": Category.FINANCIAL,
    "finanzas": Category.FINANCIAL,
}


@dataclass(frozen=True)
class Signal:
    """A journaled observation.

    Attributes:
        text: The event itself.
        thought: Thought associated with the event.
        feeling: Feeling associated with the event.
        body_sensation: Physical sensation associated with the event.
        category: Detection stream the signal belongs to.
        id: Database ID, None for new signals.
        user_id: Owner of the signal.
        timestamp: ISO timestamp assigned by the store.
    """

    text: str = ""
    thought: str = ""
    feeling: str = ""
    body_sensation: str = ""
    category: Category = Category.PERSONAL
    id: int | None = None
    user_id: str | None = None
    timestamp: str | None = None


@dataclass(frozen=True)
class SynchronizationEvent:
    """A contraction followed by an expansion-resonance in one category.

    Attributes:
        message: Category-specific description of the pattern.
        solution: Generated text connecting both signals (or a fallback).
        category: Category where the pattern was detected.
        contraction_id: ID of the earliest signal of the category.
        expansion_id: ID of the latest signal of the category.
        id: Database ID, None for new events.
        user_id: Owner of the event.
        timestamp: ISO timestamp assigned at emission.
    """

    message: str
    solution: str
    category: Category
    contraction_id: int | None = None
    expansion_id: int | None = None
    id: int | None = None
    user_id: str | None = None
    timestamp: str | None = None


@dataclass
class SignalDraft:
    """Form fields of the signal being composed."""

    text: str = ""
    thought: str = ""
    feeling: str = ""
    body_sensation: str = ""
    category: Category = Category.PERSONAL

    def is_empty(self) -> bool:
        """A draft without event text cannot be saved."""
        return not self.text.strip()

    def reset(self) -> None:
        """Clear every field back to its default."""
        self.text = ""
        self.thought = ""
        self.feeling = ""
        self.body_sensation = ""
        self.category = Category.PERSONAL

    def to_signal(self, user_id: str | None = None) -> Signal:
        """Build an unsaved Signal from the draft."""
        return Signal(
            text=self.text,
            thought=self.thought,
            feeling=self.feeling,
            body_sensation=self.body_sensation,
            category=self.category,
            user_id=user_id,
        )
