"""JSONL logging for sync observability."""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    url: str | None = None
    state: str | None = None
    count: int | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured logs in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".friendface" / "logs"
        self.log_dir = Path(log_dir)
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create log directory %s: %s", self.log_dir, e)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file.

        An unwritable log never interrupts the caller; the failure goes to
        the module logger instead.
        """
        try:
            self._rotate_if_needed()
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
        except OSError as e:
            logger.warning("Cannot write event log %s: %s", self.log_path, e)

    def log(
        self,
        event: str,
        *,
        url: str | None = None,
        state: str | None = None,
        count: int | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            url=url,
            state=state,
            count=count,
            duration_ms=duration_ms,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_sync_start(self, url: str) -> None:
        self.log("sync_start", url=url)

    def log_sync_complete(self, url: str, count: int, duration_ms: float) -> None:
        """Log a sync that wrote fresh data to the cache."""
        self.log("sync_complete", url=url, state="synced", count=count, duration_ms=duration_ms)

    def log_sync_fallback(
        self,
        url: str,
        error: str,
        duration_ms: float,
        *,
        kind: str | None = None,
    ) -> None:
        """Log a sync that fell back to cached data."""
        extra = {"kind": kind} if kind else {}
        self.log(
            "sync_fallback",
            url=url,
            state="sync_failed_fallback",
            duration_ms=duration_ms,
            error=error,
            **extra,
        )

    def log_store_error(self, error: str, *, kind: str | None = None) -> None:
        extra = {"kind": kind} if kind else {}
        self.log("store_error", error=error, **extra)


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger


def reset_logger() -> None:
    """Reset the global logger (for testing)."""
    global _logger
    _logger = None
