"""SQLite-backed persistence for users and posts."""
from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .models import PostRecord, UserRecord

logger = logging.getLogger("blogapi.database")


class DuplicateEmailError(ValueError):
    """Another user already owns the email address."""


class UnknownAuthorError(ValueError):
    """A post references a user that does not exist."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "blog.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _generate_id() -> str:
    return str(uuid.uuid4())


_USER_COLUMNS = ("email", "name")
_POST_COLUMNS = ("title", "content", "published")


class Database:
    """Simple wrapper around SQLite for persisting users and their posts.

    Deleting a user removes that user's posts through ``ON DELETE CASCADE``.
    Listings are ordered newest first by creation time.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS posts (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    published INTEGER NOT NULL DEFAULT 0,
                    author_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_posts_author_id ON posts(author_id);
                CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at);
                CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users(self) -> List[UserRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [self._row_to_user(row) for row in rows]

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def create_user(self, *, email: str, name: str) -> UserRecord:
        """Insert a new user with a server-assigned id and timestamps."""

        user_id = _generate_id()
        created_at = _current_timestamp()
        serialized = _serialize_datetime(created_at)

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, email, name, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (user_id, email, name, serialized, serialized),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc

        logger.debug("Created user %s", user_id)
        return UserRecord(
            id=user_id,
            email=email,
            name=name,
            created_at=created_at,
            updated_at=created_at,
        )

    def update_user(self, user_id: str, **fields: object) -> Optional[UserRecord]:
        """Apply the supplied fields only. Returns ``None`` if the user is missing."""

        updates = self._collect_updates(_USER_COLUMNS, fields)
        if not updates:
            return self.get_user(user_id)

        query, values = self._update_statement("users", updates, user_id)
        with self._connect() as conn:
            try:
                cursor = conn.execute(query, values)
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc
            if cursor.rowcount == 0:
                return None

        return self.get_user(user_id)

    def delete_user(self, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Post management
    # ------------------------------------------------------------------
    def list_posts(
        self,
        *,
        published: Optional[bool] = None,
        author_id: Optional[str] = None,
    ) -> List[PostRecord]:
        clauses: List[str] = []
        values: List[object] = []
        if published is not None:
            clauses.append("published = ?")
            values.append(int(published))
        if author_id is not None:
            clauses.append("author_id = ?")
            values.append(author_id)

        query = "SELECT * FROM posts"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, rowid DESC"

        with self._connect() as conn:
            rows = conn.execute(query, values).fetchall()
        return [self._row_to_post(row) for row in rows]

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_post(row)

    def create_post(
        self,
        *,
        title: str,
        content: str,
        author_id: str,
        published: bool = False,
    ) -> PostRecord:
        post_id = _generate_id()
        created_at = _current_timestamp()
        serialized = _serialize_datetime(created_at)

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO posts (id, title, content, published, author_id, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (post_id, title, content, int(published), author_id, serialized, serialized),
                )
            except sqlite3.IntegrityError as exc:
                raise UnknownAuthorError("Author not found") from exc

        logger.debug("Created post %s for user %s", post_id, author_id)
        return PostRecord(
            id=post_id,
            title=title,
            content=content,
            published=bool(published),
            author_id=author_id,
            created_at=created_at,
            updated_at=created_at,
        )

    def update_post(self, post_id: str, **fields: object) -> Optional[PostRecord]:
        """Apply the supplied fields only. Returns ``None`` if the post is missing."""

        updates = self._collect_updates(_POST_COLUMNS, fields)
        if not updates:
            return self.get_post(post_id)
        if "published" in updates:
            updates["published"] = int(bool(updates["published"]))

        query, values = self._update_statement("posts", updates, post_id)
        with self._connect() as conn:
            cursor = conn.execute(query, values)
            if cursor.rowcount == 0:
                return None

        return self.get_post(post_id)

    def delete_post(self, post_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM posts WHERE id = ?", (post_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _collect_updates(columns: tuple, fields: Dict[str, object]) -> Dict[str, object]:
        updates: Dict[str, object] = {}
        for column in columns:
            if column not in fields or fields[column] is None:
                continue
            updates[column] = fields[column]
        return updates

    @staticmethod
    def _update_statement(table: str, updates: Dict[str, object], row_id: str) -> tuple:
        assignments = [f"{column} = ?" for column in updates]
        assignments.append("updated_at = ?")
        values: List[object] = list(updates.values())
        values.append(_serialize_datetime(_current_timestamp()))
        values.append(row_id)
        query = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?"
        return query, values

    def _row_to_user(self, row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=str(row["id"]),
            email=str(row["email"]),
            name=str(row["name"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_post(self, row: sqlite3.Row) -> PostRecord:
        return PostRecord(
            id=str(row["id"]),
            title=str(row["title"]),
            content=str(row["content"]),
            published=bool(row["published"]),
            author_id=str(row["author_id"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = [
    "Database",
    "DuplicateEmailError",
    "UnknownAuthorError",
    "resolve_database_path",
]
