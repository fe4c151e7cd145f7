"""CLI commands for syncing and browsing the user cache.

Every command tries one sync first, then prints what the cache holds.
"""

import argparse
import asyncio
import sys
from dataclasses import replace

from .cache import CacheStore, User
from .config import SyncConfig, config_from_env
from .errors import StoreError
from .fetcher import RemoteFetcher
from .logging import configure_logger
from .sync import CacheSynchronizer, SyncEvent, SyncNotice, SyncState


def _format_active(is_active: bool) -> str:
    """Format the active flag for display."""
    if is_active:
        return "\033[32mactive\033[0m"
    return "\033[90moffline\033[0m"


def _format_notice(notice: SyncNotice) -> str | None:
    """Describe a sync notice, or None if there's nothing to say."""
    if notice.event is SyncEvent.USING_CACHED_DATA:
        return f"\033[33mUsing cached data\033[0m ({notice.error})"
    if notice.event is SyncEvent.STORE_WRITE_FAILED:
        return f"\033[31mWarning: could not update cache\033[0m ({notice.error})"
    return None


def _resolve_config(args: argparse.Namespace) -> SyncConfig | None:
    """Environment config with command-line overrides applied.

    Returns None (after printing the error) if an override is invalid.
    """
    config = config_from_env()
    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.url:
        overrides["url"] = args.url
    if args.timeout is not None:
        overrides["fetch_timeout"] = args.timeout
    if not overrides:
        return config
    try:
        return replace(config, **overrides)
    except ValueError as e:
        print(f"Error: {e}")
        return None


async def _sync_once(synchronizer: CacheSynchronizer) -> SyncState:
    try:
        return await synchronizer.load()
    finally:
        await synchronizer.close()


def _run_sync(config: SyncConfig, store: CacheStore) -> SyncState:
    """Run one sync against the store, printing any notices."""
    synchronizer = CacheSynchronizer(
        store,
        RemoteFetcher(config.url, timeout=config.fetch_timeout),
        event_logger=configure_logger(config.log_dir),
    )

    def print_notice(notice: SyncNotice) -> None:
        message = _format_notice(notice)
        if message:
            print(message, file=sys.stderr)

    synchronizer.subscribe(print_notice)
    return asyncio.run(_sync_once(synchronizer))


def _open_store(config: SyncConfig) -> CacheStore | None:
    store = CacheStore(config.db_path)
    try:
        store.init_db()
    except StoreError as e:
        print(f"Error: {e}")
        return None
    return store


def _print_user_detail(user: User) -> None:
    print(f"\n{user.name}  ({_format_active(user.is_active)})")
    print("-" * 60)
    print(f"Age:        {user.age}")
    print(f"Company:    {user.company}")
    print(f"Email:      {user.email}")
    print(f"Address:    {user.address}")
    print(f"Registered: {user.formatted_registered}")
    if user.tags:
        print(f"Tags:       {', '.join(user.tags)}")
    if user.about:
        print(f"\n{user.about}")

    print(f"\nFriends ({len(user.friends)}):")
    for name in user.friend_names:
        print(f"  - {name}")


def cmd_list(args: argparse.Namespace) -> int:
    """List all cached users."""
    config = _resolve_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    if store is None:
        return 1

    try:
        _run_sync(config, store)
        users = store.read_all()
    finally:
        store.close()

    if not users:
        print("No users cached yet.")
        return 0

    print(f"\n{'Name':<28} {'Status':<16} {'Age':>4}  Id")
    print("-" * 80)
    for user in users:
        status = _format_active(user.is_active)
        print(f"{user.name:<28} {status:<25} {user.age:>4}  {user.id}")

    print(f"\nTotal: {len(users)} user(s)")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Show one cached user with their friends."""
    config = _resolve_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    if store is None:
        return 1

    try:
        _run_sync(config, store)
        user = store.get(args.id)
    finally:
        store.close()

    if user is None:
        print(f"Error: User '{args.id}' not found.")
        return 1

    _print_user_detail(user)
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    """Sync once and report the outcome."""
    config = _resolve_config(args)
    if config is None:
        return 1
    store = _open_store(config)
    if store is None:
        return 1

    try:
        state = _run_sync(config, store)
        count = store.count()
    finally:
        store.close()

    print(f"Sync state: {state.value} ({count} user(s) cached)")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the friendface CLI."""
    parser = argparse.ArgumentParser(
        prog="friendface",
        description="Browse the Friendface user directory, online or offline",
    )
    parser.add_argument("--db", help="Path to the SQLite cache")
    parser.add_argument("--url", help="URL of the user feed")
    parser.add_argument(
        "--timeout",
        type=float,
        help="Fetch timeout in seconds",
    )

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    subparsers.add_parser("list", help="List cached users")

    show_parser = subparsers.add_parser("show", help="Show one user in detail")
    show_parser.add_argument("id", help="Id of the user")

    subparsers.add_parser("sync", help="Sync the cache and report the result")

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "list": cmd_list,
        "show": cmd_show,
        "sync": cmd_sync,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(run_cli())
