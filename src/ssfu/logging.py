"""Structured JSONL event log.

One JSON object per line in ``~/.ssfu/logs/logs.jsonl``: signals added,
synchronizations emitted, generator and store failures. Human-readable
diagnostics go through the stdlib ``logging`` module instead.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

DEFAULT_LOG_DIR = Path.home() / ".ssfu" / "logs"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LogEntry:
    """One line of the event log."""

    timestamp: str
    event: str
    user_id: str | None = None
    category: str | None = None
    signal_id: int | None = None
    sync_id: int | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Fields that carry a value; None and an empty extra are left out."""
        return {
            key: value
            for key, value in asdict(self).items()
            if value is not None and value != {}
        }


class JSONLLogger:
    """Appends LogEntry lines to a size-capped file."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        path = self.log_path
        if not path.exists() or path.stat().st_size < self.max_size_bytes:
            return
        stamp = _utc_now().strftime("%Y%m%d_%H%M%S")
        path.rename(self.log_dir / f"{path.stem}_{stamp}{path.suffix}")

    def _write(self, entry: LogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        self._rotate_if_needed()
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def log(
        self,
        event: str,
        *,
        user_id: str | None = None,
        category: str | None = None,
        signal_id: int | None = None,
        sync_id: int | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Append one event. Unknown keyword arguments go to ``extra``."""
        self._write(
            LogEntry(
                timestamp=_utc_now().isoformat(),
                event=event,
                user_id=user_id,
                category=category,
                signal_id=signal_id,
                sync_id=sync_id,
                duration_ms=duration_ms,
                error=error,
                extra=dict(extra),
            )
        )

    def log_signal_added(
        self,
        signal_id: int | None,
        category: str,
        *,
        user_id: str | None = None,
    ) -> None:
        self.log("signal_added", user_id=user_id, signal_id=signal_id, category=category)

    def log_sync_detected(
        self,
        category: str,
        *,
        user_id: str | None = None,
        sync_id: int | None = None,
        contraction_id: int | None = None,
        expansion_id: int | None = None,
        fallback: bool = False,
    ) -> None:
        """Log an emitted synchronization and the signal pair behind it."""
        self.log(
            "sync_detected",
            user_id=user_id,
            category=category,
            sync_id=sync_id,
            contraction_id=contraction_id,
            expansion_id=expansion_id,
            fallback=fallback,
        )

    def log_generator_error(
        self,
        error: str,
        *,
        user_id: str | None = None,
        duration_ms: float | None = None,
        kind: str = "error",
    ) -> None:
        """Log a solution request that ended in a fallback.

        ``kind`` is ``error``, ``timeout`` or ``unexpected``.
        """
        self.log(
            "generator_error",
            user_id=user_id,
            duration_ms=duration_ms,
            error=error,
            kind=kind,
        )

    def log_store_error(
        self,
        operation: str,
        error: str,
        *,
        user_id: str | None = None,
    ) -> None:
        self.log("store_error", user_id=user_id, error=error, operation=operation)


_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Process-wide logger, created on first use."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Replace the process-wide logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
