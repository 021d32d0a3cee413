"""Synchronization detection, solution generation and scheduling."""

from .detector import (
    DetectorConfig,
    SyncCandidate,
    detect,
    is_contraction,
    is_expansion_resonance,
    partition_by_category,
)
from .generator import (
    FALLBACK_ERROR,
    FALLBACK_UNEXPECTED,
    GeneratedSolution,
    SolutionGenerator,
    build_prompt,
)
from .synchronizer import DedupPolicy, SyncConfig, Synchronizer

__all__ = [
    "DedupPolicy",
    "DetectorConfig",
    "FALLBACK_ERROR",
    "FALLBACK_UNEXPECTED",
    "GeneratedSolution",
    "SolutionGenerator",
    "SyncCandidate",
    "SyncConfig",
    "Synchronizer",
    "build_prompt",
    "detect",
    "is_contraction",
    "is_expansion_resonance",
    "partition_by_category",
]
