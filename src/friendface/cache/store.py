"""SQLite storage for cached users and friends."""

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from ..errors import StoreError, StoreErrorKind
from .models import EPOCH, Friend, User, parse_iso8601
from .tags import decode_tags, encode_tags

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "id, name, age, company, email, address, about, registered, tags, is_active"
)


class CacheStore:
    """Persistent storage for users using SQLite.

    Users and friends are keyed by their id: writing a record whose id is
    already present overwrites it instead of adding a second row. Rows keep
    the sequence number of their first insertion, which gives ``read_all``
    a stable order.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def init_db(self) -> None:
        """Create the cache tables if they don't exist.

        Raises:
            StoreError: If the database cannot be opened or created.
        """
        try:
            conn = self._get_connection()
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS cached_users (
                    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
                    id          TEXT NOT NULL UNIQUE,
                    name        TEXT,
                    age         INTEGER,
                    company     TEXT,
                    email       TEXT,
                    address     TEXT,
                    about       TEXT,
                    registered  TEXT,
                    tags        TEXT,
                    is_active   INTEGER,
                    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
                );

                CREATE TABLE IF NOT EXISTS cached_friends (
                    id    TEXT PRIMARY KEY,
                    name  TEXT
                );

                CREATE TABLE IF NOT EXISTS user_friends (
                    user_id    TEXT NOT NULL REFERENCES cached_users(id),
                    position   INTEGER NOT NULL,
                    friend_id  TEXT NOT NULL REFERENCES cached_friends(id),
                    PRIMARY KEY (user_id, position)
                );
            """)
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Cannot initialize cache at {self.db_path}: {e}") from e

    def upsert(self, users: Iterable[User]) -> int:
        """Insert or overwrite users, all in one transaction.

        Each user's friend list is replaced by the incoming one. If the
        same id appears more than once in the batch, the last one wins.

        Args:
            users: The records to write.

        Returns:
            Number of distinct users written.

        Raises:
            StoreError: If the write fails. Nothing from the batch is kept.
        """
        latest: dict[str, User] = {}
        for user in users:
            latest[user.id] = user

        conn = self._get_connection()
        try:
            with conn:
                for user in latest.values():
                    self._write_user(conn, user)
        except sqlite3.IntegrityError as e:
            raise StoreError(f"Constraint violated while caching users: {e}",
                             StoreErrorKind.CONSTRAINT) from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to cache users: {e}", StoreErrorKind.WRITE) from e

        logger.debug("Upserted %d user(s)", len(latest))
        return len(latest)

    def _write_user(self, conn: sqlite3.Connection, user: User) -> None:
        conn.execute(
            f"""
            INSERT INTO cached_users ({USER_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                age = excluded.age,
                company = excluded.company,
                email = excluded.email,
                address = excluded.address,
                about = excluded.about,
                registered = excluded.registered,
                tags = excluded.tags,
                is_active = excluded.is_active,
                updated_at = datetime('now')
            """,
            (
                user.id,
                user.name,
                user.age,
                user.company,
                user.email,
                user.address,
                user.about,
                user.registered.isoformat(),
                encode_tags(user.tags),
                int(user.is_active),
            ),
        )
        conn.execute("DELETE FROM user_friends WHERE user_id = ?", (user.id,))
        for position, friend in enumerate(user.friends):
            conn.execute(
                """
                INSERT INTO cached_friends (id, name) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name
                """,
                (friend.id, friend.name),
            )
            conn.execute(
                "INSERT INTO user_friends (user_id, position, friend_id) VALUES (?, ?, ?)",
                (user.id, position, friend.id),
            )

    def read_all(self) -> list[User]:
        """Get all cached users in first-insertion order.

        Returns:
            List of all stored users, with their friends attached.
        """
        conn = self._get_connection()
        rows = conn.execute(
            f"SELECT {USER_COLUMNS} FROM cached_users ORDER BY seq"
        ).fetchall()
        friends = self._friends_by_user(conn)
        return [self._row_to_user(row, friends.get(row["id"], [])) for row in rows]

    def get(self, user_id: str) -> User | None:
        """Get a single cached user by id.

        Args:
            user_id: The id to look up.

        Returns:
            The user, or None if it is not cached.
        """
        conn = self._get_connection()
        row = conn.execute(
            f"SELECT {USER_COLUMNS} FROM cached_users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        friends = self._friends_by_user(conn, user_id)
        return self._row_to_user(row, friends.get(user_id, []))

    def count(self) -> int:
        """Number of cached users."""
        conn = self._get_connection()
        return conn.execute("SELECT COUNT(*) FROM cached_users").fetchone()[0]

    def is_empty(self) -> bool:
        return self.count() == 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _friends_by_user(
        self, conn: sqlite3.Connection, user_id: str | None = None
    ) -> dict[str, list[Friend]]:
        """Load friend lists, keyed by user id, in stored order."""
        query = """
            SELECT uf.user_id, f.id, f.name
            FROM user_friends uf
            JOIN cached_friends f ON f.id = uf.friend_id
        """
        params: tuple[str, ...] = ()
        if user_id is not None:
            query += " WHERE uf.user_id = ?"
            params = (user_id,)
        query += " ORDER BY uf.user_id, uf.position"

        grouped: dict[str, list[Friend]] = {}
        for row in conn.execute(query, params):
            grouped.setdefault(row["user_id"], []).append(
                Friend(id=row["id"], name=row["name"] or "")
            )
        return grouped

    def _row_to_user(self, row: sqlite3.Row, friends: list[Friend]) -> User:
        """Convert a database row to a User, defaulting empty columns."""
        return User(
            id=row["id"],
            name=row["name"] or "",
            age=row["age"] or 0,
            company=row["company"] or "",
            email=row["email"] or "",
            address=row["address"] or "",
            about=row["about"] or "",
            registered=self._parse_registered(row["registered"]),
            tags=tuple(decode_tags(row["tags"])),
            friends=tuple(friends),
            is_active=bool(row["is_active"]),
        )

    def _parse_registered(self, value: str | None) -> datetime:
        if not value:
            return EPOCH
        try:
            return parse_iso8601(value)
        except ValueError:
            logger.warning("Unparseable registered value in cache: %r", value)
            return EPOCH
