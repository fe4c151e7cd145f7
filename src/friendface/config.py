"""Configuration for the sync core.

Values come from the environment (optionally a ``.env`` file loaded by
``main``) and fall back to the defaults below.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://www.hackingwithswift.com/samples/friendface.json"
DEFAULT_HOME = Path.home() / ".friendface"


@dataclass
class SyncConfig:
    """Configuration for fetching and caching.

    Attributes:
        url: Remote JSON feed of users.
        db_path: SQLite cache file.
        fetch_timeout: Seconds before a fetch is abandoned.
        log_dir: Directory for the JSONL event log.
    """

    url: str = DEFAULT_URL
    db_path: Path | None = None
    fetch_timeout: float = 10.0
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.db_path is None:
            self.db_path = DEFAULT_HOME / "cache.db"
        else:
            self.db_path = Path(self.db_path).expanduser()

        if self.log_dir is None:
            self.log_dir = DEFAULT_HOME / "logs"
        else:
            self.log_dir = Path(self.log_dir).expanduser()

        if self.fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")

        if not self.url:
            raise ValueError("url must not be empty")


def config_from_env() -> SyncConfig:
    """Load configuration from environment variables."""
    timeout = SyncConfig.fetch_timeout
    raw_timeout = os.getenv("FRIENDFACE_TIMEOUT")
    if raw_timeout:
        try:
            parsed = float(raw_timeout)
        except ValueError:
            parsed = 0.0
        if parsed > 0:
            timeout = parsed
        else:
            logger.warning("Invalid FRIENDFACE_TIMEOUT %r, using %s", raw_timeout, timeout)

    db_path = os.getenv("FRIENDFACE_DB")
    log_dir = os.getenv("FRIENDFACE_LOG_DIR")

    return SyncConfig(
        url=os.getenv("FRIENDFACE_URL") or DEFAULT_URL,
        db_path=Path(db_path) if db_path else None,
        fetch_timeout=timeout,
        log_dir=Path(log_dir) if log_dir else None,
    )
