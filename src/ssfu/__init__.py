"""SSFU: a signal journal that detects contraction/resonance synchronizations."""

__version__ = "0.1.0"
