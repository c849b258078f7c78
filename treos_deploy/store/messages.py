"""Append-only, hash-chained message log backed by SQLite.

Each author has one feed. Every message links to the key of the author's
previous message, carries a sequence number and is signed by the author.
The message key is the content address of the signed message.

Design:
- Append-only: only `append()` writes; no update, no delete.
- Hash-chained per author: `previous` is the key of the prior message.
- WAL journal mode for concurrent readers.
- key UNIQUE and (author, sequence) UNIQUE for tamper detection.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from treos_deploy.core.errors import DeployError
from treos_deploy.core.hasher import message_key
from treos_deploy.core.identity import Identity, sign_content, verify_content
from treos_deploy.models.records import PublishedMessage, StoredMessage


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_MESSAGES = """
CREATE TABLE IF NOT EXISTS messages (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    key           TEXT NOT NULL UNIQUE,
    author        TEXT NOT NULL,
    sequence      INTEGER NOT NULL,
    previous      TEXT,
    timestamp_ms  INTEGER NOT NULL,
    type          TEXT NOT NULL DEFAULT '',
    content_json  TEXT NOT NULL,
    signature     TEXT NOT NULL,
    UNIQUE (author, sequence)
);
"""

_CREATE_IDX_TYPE = """
CREATE INDEX IF NOT EXISTS idx_messages_type ON messages(type, id);
"""

_CREATE_IDX_AUTHOR = """
CREATE INDEX IF NOT EXISTS idx_messages_author ON messages(author, sequence);
"""


class FeedIntegrityError(DeployError):
    """Raised when an author's feed fails link, key, or signature checks."""

    def __init__(self, author: str, detail: str) -> None:
        self.author = author
        self.detail = detail
        super().__init__(f"Feed {author[:9]} is broken: {detail}")


def _to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def _unsigned_value(
    previous: str | None,
    author: str,
    sequence: int,
    timestamp_ms: int,
    content: dict[str, Any],
) -> dict[str, Any]:
    return {
        "previous": previous,
        "author": author,
        "sequence": sequence,
        "timestamp": timestamp_ms,
        "content": content,
    }


class MessageLog:
    """Append-only, per-author hash-chained message log.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_MESSAGES)
            conn.execute(_CREATE_IDX_TYPE)
            conn.execute(_CREATE_IDX_AUTHOR)
            conn.commit()

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(
        self,
        identity: Identity,
        content: dict[str, Any],
        *,
        timestamp_ms: int | None = None,
    ) -> PublishedMessage:
        """Sign *content* as the next message in the identity's feed.

        Timestamps within a feed are strictly increasing.
        """
        if not isinstance(content.get("type"), str):
            raise ValueError("message content must carry a string 'type'")

        head = self._get_head(identity.id)
        previous, sequence, last_ts = head if head else (None, 0, 0)
        now = timestamp_ms or int(datetime.now(timezone.utc).timestamp() * 1000)
        ts = max(now, last_ts + 1)

        value = _unsigned_value(previous, identity.id, sequence + 1, ts, content)
        signature = sign_content(identity, value)
        key = message_key({**value, "signature": signature})

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO messages
                    (key, author, sequence, previous, timestamp_ms, type,
                     content_json, signature)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    key,
                    identity.id,
                    sequence + 1,
                    previous,
                    ts,
                    content["type"],
                    json.dumps(content),
                    signature,
                ),
            )
            conn.commit()

        return PublishedMessage(
            key=key,
            author=identity.id,
            timestamp=_to_datetime(ts),
            content=content,
            previous=previous,
        )

    def _get_head(self, author: str) -> tuple[str, int, int] | None:
        """(key, sequence, timestamp_ms) of the author's latest message."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT key, sequence, timestamp_ms FROM messages "
                "WHERE author = ? ORDER BY sequence DESC LIMIT 1",
                (author,),
            ).fetchone()
        return (row[0], row[1], row[2]) if row else None

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def messages_by_type(self, record_type: str) -> list[StoredMessage]:
        """All messages whose content has *record_type*, in append order."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key, author, previous, timestamp_ms, content_json "
                "FROM messages WHERE type = ? ORDER BY id ASC",
                (record_type,),
            ).fetchall()
        return [
            StoredMessage(
                key=key,
                author=author,
                previous=previous,
                timestamp=_to_datetime(ts),
                content=json.loads(content_json),
            )
            for key, author, previous, ts, content_json in rows
        ]

    def get(self, key: str) -> StoredMessage | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT key, author, previous, timestamp_ms, content_json "
                "FROM messages WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        key, author, previous, ts, content_json = row
        return StoredMessage(
            key=key,
            author=author,
            previous=previous,
            timestamp=_to_datetime(ts),
            content=json.loads(content_json),
        )

    def authors(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT author FROM messages ORDER BY author"
            ).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Feed verification
    # ------------------------------------------------------------------

    def verify_feed(self, author: str) -> bool:
        """Verify an author's feed.

        Walks all messages in sequence order, checks the sequence numbers and
        `previous` links, recomputes each key, and verifies each signature.

        Returns True if the feed is valid, raises FeedIntegrityError otherwise.
        """
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key, sequence, previous, timestamp_ms, content_json, signature "
                "FROM messages WHERE author = ? ORDER BY sequence ASC",
                (author,),
            ).fetchall()

        prev_key: str | None = None
        for expected_seq, (key, sequence, previous, ts, content_json, signature) in enumerate(
            rows, start=1
        ):
            if sequence != expected_seq:
                raise FeedIntegrityError(
                    author, f"expected sequence {expected_seq}, got {sequence}"
                )
            if previous != prev_key:
                raise FeedIntegrityError(
                    author,
                    f"message {key} links to {previous!r}, expected {prev_key!r}",
                )
            value = _unsigned_value(previous, author, sequence, ts, json.loads(content_json))
            if not verify_content(author, value, signature):
                raise FeedIntegrityError(author, f"bad signature on {key}")
            recomputed = message_key({**value, "signature": signature})
            if recomputed != key:
                raise FeedIntegrityError(
                    author, f"message {key} hashes to {recomputed}"
                )
            prev_key = key

        return True
