"""Records stored by the blog database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UserRecord:
    """A user row as persisted in the database."""

    id: str
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PostRecord:
    """A post row; ``author_id`` references :class:`UserRecord.id`."""

    id: str
    title: str
    content: str
    published: bool
    author_id: str
    created_at: datetime
    updated_at: datetime


__all__ = ["PostRecord", "UserRecord"]
