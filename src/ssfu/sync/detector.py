"""Contraction → expansion-resonance pattern detection.

Signals are split by category. Within a category only the earliest and the
latest signal are inspected: the category synchronizes when the earliest one
is a contraction and the latest one is an expansion-resonance. Everything
here is pure; emission and generation live in the synchronizer.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..signals.models import Category, Signal

DEFAULT_CONTRACTION_KEYWORDS = (
    "desesperacion",
    "hambre",
    "miedo",
    "tensión",
    "incertidumbre",
    "preocupacion",
)

DEFAULT_EXPANSION_KEYWORDS = (
    "calma",
    "lleno",
    "seguridad",
    "relajación",
    "claridad",
    "tranquilidad",
)

DEFAULT_MARKER = "resonancia"


@dataclass
class DetectorConfig:
    """Keyword lists and categories used by the detector.

    Keywords and marker are lowercased on construction so matching only has
    to lowercase the signal fields.
    """

    contraction_keywords: tuple[str, ...] = DEFAULT_CONTRACTION_KEYWORDS
    expansion_keywords: tuple[str, ...] = DEFAULT_EXPANSION_KEYWORDS
    marker: str = DEFAULT_MARKER
    categories: tuple[Category, ...] = field(default_factory=lambda: tuple(Category))

    def __post_init__(self) -> None:
        self.contraction_keywords = _normalize_keywords(self.contraction_keywords)
        self.expansion_keywords = _normalize_keywords(self.expansion_keywords)
        self.marker = self.marker.strip().lower()
        self.categories = tuple(Category.parse(c) for c in self.categories)

        if not self.contraction_keywords:
            raise ValueError("contraction_keywords must not be empty")
        if not self.expansion_keywords:
            raise ValueError("expansion_keywords must not be empty")
        if not self.marker:
            raise ValueError("marker must not be empty")


def _normalize_keywords(keywords: Iterable[str]) -> tuple[str, ...]:
    return tuple(k.strip().lower() for k in keywords if k.strip())


@dataclass(frozen=True)
class SyncCandidate:
    """A category whose first and last signals form a synchronization."""

    category: Category
    contraction: Signal
    expansion: Signal

    @property
    def message(self) -> str:
        return self.category.message

    @property
    def key(self) -> tuple[Category, int | None, int | None]:
        """Identity of the pair, used to avoid emitting it twice."""
        return (self.category, self.contraction.id, self.expansion.id)


def _lower(value: str | None) -> str:
    return (value or "").lower()


def is_contraction(signal: Signal, config: DetectorConfig) -> bool:
    """True if the feeling or thought mentions any contraction keyword."""
    feeling = _lower(signal.feeling)
    thought = _lower(signal.thought)
    return any(k in feeling or k in thought for k in config.contraction_keywords)


def is_expansion_resonance(signal: Signal, config: DetectorConfig) -> bool:
    """True if the text names the marker and the feeling an expansion keyword."""
    if config.marker not in _lower(signal.text):
        return False
    feeling = _lower(signal.feeling)
    return any(k in feeling for k in config.expansion_keywords)


def partition_by_category(
    signals: Iterable[Signal],
    categories: Sequence[Category],
) -> dict[Category, list[Signal]]:
    """Group signals by category, keeping their relative order.

    Signals of categories outside ``categories`` are dropped.
    """
    partitions: dict[Category, list[Signal]] = {c: [] for c in categories}
    for signal in signals:
        if signal.category in partitions:
            partitions[signal.category].append(signal)
    return partitions


def detect(
    signals: Sequence[Signal],
    config: DetectorConfig | None = None,
) -> list[SyncCandidate]:
    """Find every category that currently synchronizes.

    Args:
        signals: The user's signals in insertion order.
        config: Keywords and categories, defaults if None.

    Returns:
        One candidate per qualifying category, in configured category order.
    """
    config = config or DetectorConfig()
    candidates = []

    for category, entries in partition_by_category(signals, config.categories).items():
        if len(entries) < 2:
            continue

        first, last = entries[0], entries[-1]
        if is_contraction(first, config) and is_expansion_resonance(last, config):
            candidates.append(SyncCandidate(category, first, last))

    return candidates
