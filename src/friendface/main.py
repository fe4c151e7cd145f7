"""Friendface entry point."""

import logging
import os
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import run_cli

DEFAULT_LOG_LEVEL = "WARNING"


def _log_level() -> str:
    """Log level from FRIENDFACE_LOG_LEVEL, or WARNING if unset or unknown."""
    level = os.getenv("FRIENDFACE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    if not isinstance(logging.getLevelName(level), int):
        return DEFAULT_LOG_LEVEL
    return level


def main() -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))

    logging.basicConfig(
        level=_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
