"""TurnStore - SQLite storage of committed conversation transcripts.

The chat core reads a transcript once when a conversation opens and writes it
back once when the conversation closes; this store does not arbitrate
concurrent writers.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
import time
from typing import Sequence

import aiosqlite

from vidya.config import DB_PATH
from vidya.turns import Attachment, Role, Turn

logger = logging.getLogger(__name__)


def _remove_db_files(db_path: str) -> None:
    """Remove database file and WAL/SHM sidecars so a clean DB can be created."""
    for path in (db_path, db_path + "-wal", db_path + "-shm", db_path + "-journal"):
        try:
            if os.path.exists(path):
                os.unlink(path)
                logger.info("Removed %s", path)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)


class TurnStore:
    """SQLite-based transcript storage keyed by (user_id, conversation_id).

    Usage:
        store = TurnStore()
        await store.init()

        turns = await store.load_turns("asha", "companion")
        ...
        await store.save_turns("asha", "companion", turns, surface="companion")

        conversations = await store.list_conversations("asha")

    """

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._initialized = False

    async def init(self) -> None:
        """Initialize database and create tables.

        If the database is missing or corrupted, removes it and creates a new one.

        """
        if self._initialized:
            return

        dir_path = os.path.dirname(self.db_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        for attempt in range(2):
            try:
                self._db = await aiosqlite.connect(self.db_path)
                self._db.row_factory = aiosqlite.Row
                await self._db.execute("PRAGMA journal_mode=WAL")
                await self._db.execute("PRAGMA busy_timeout=5000")
                await self._db.execute("PRAGMA foreign_keys=ON")
                await self._create_tables()
                self._initialized = True
                logger.info("TurnStore initialized at %s", self.db_path)
                return
            except (sqlite3.Error, OSError) as e:
                if self._db:
                    try:
                        await self._db.close()
                    except sqlite3.Error as close_error:
                        logger.debug("Ignoring close failure: %s", close_error)
                    self._db = None
                if attempt == 0:
                    logger.warning(
                        "Database missing or corrupted (%s), creating new one: %s",
                        type(e).__name__,
                        e,
                    )
                    _remove_db_files(self.db_path)
                else:
                    raise

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            self._initialized = False

    async def _create_tables(self) -> None:
        await self._db.executescript("""
            CREATE TABLE IF NOT EXISTS conversations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                conversation_id TEXT NOT NULL,
                surface TEXT,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL,
                turn_count INTEGER DEFAULT 0,
                UNIQUE (user_id, conversation_id)
            );

            CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations(user_id);
            CREATE INDEX IF NOT EXISTS idx_conversations_updated ON conversations(updated_at);

            CREATE TABLE IF NOT EXISTS turns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_pk INTEGER NOT NULL,
                position INTEGER NOT NULL,
                role TEXT NOT NULL,
                text TEXT NOT NULL,
                media_type TEXT,
                attachment BLOB,
                is_summary INTEGER DEFAULT 0,
                FOREIGN KEY (conversation_pk) REFERENCES conversations(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_turns_conversation ON turns(conversation_pk, position);
        """)
        await self._db.commit()

    async def _conversation_pk(self, user_id: str, conversation_id: str) -> int | None:
        cursor = await self._db.execute(
            "SELECT id FROM conversations WHERE user_id = ? AND conversation_id = ?",
            (user_id, conversation_id),
        )
        row = await cursor.fetchone()
        return row["id"] if row else None

    async def load_turns(self, user_id: str, conversation_id: str) -> list[Turn]:
        """Load a transcript (oldest first); empty list if the conversation is unknown."""
        async with self._lock:
            pk = await self._conversation_pk(user_id, conversation_id)
            if pk is None:
                return []
            cursor = await self._db.execute(
                """SELECT role, text, media_type, attachment, is_summary FROM turns
                   WHERE conversation_pk = ? ORDER BY position ASC""",
                (pk,),
            )
            rows = await cursor.fetchall()

        turns = []
        for row in rows:
            attachment = None
            if row["attachment"] is not None:
                attachment = Attachment(data=bytes(row["attachment"]), media_type=row["media_type"])
            turns.append(
                Turn(
                    role=Role.parse(row["role"]),
                    text=row["text"],
                    attachment=attachment,
                    is_summary=bool(row["is_summary"]),
                )
            )
        logger.debug("Loaded %d turns for %s/%s", len(turns), user_id, conversation_id)
        return turns

    async def save_turns(
        self,
        user_id: str,
        conversation_id: str,
        turns: Sequence[Turn],
        surface: str | None = None,
    ) -> None:
        """Replace the stored transcript with ``turns``."""
        now = time.time()
        async with self._lock:
            pk = await self._conversation_pk(user_id, conversation_id)
            if pk is None:
                cursor = await self._db.execute(
                    """INSERT INTO conversations
                       (user_id, conversation_id, surface, created_at, updated_at, turn_count)
                       VALUES (?, ?, ?, ?, ?, 0)""",
                    (user_id, conversation_id, surface, now, now),
                )
                pk = cursor.lastrowid

            await self._db.execute("DELETE FROM turns WHERE conversation_pk = ?", (pk,))
            await self._db.executemany(
                """INSERT INTO turns
                   (conversation_pk, position, role, text, media_type, attachment, is_summary)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        pk,
                        position,
                        turn.role.value,
                        turn.text,
                        turn.attachment.media_type if turn.attachment else None,
                        turn.attachment.data if turn.attachment else None,
                        int(turn.is_summary),
                    )
                    for position, turn in enumerate(turns)
                ],
            )
            await self._db.execute(
                """UPDATE conversations
                   SET updated_at = ?, turn_count = ?, surface = COALESCE(?, surface)
                   WHERE id = ?""",
                (now, len(turns), surface, pk),
            )
            await self._db.commit()
        logger.info("Saved %d turns for %s/%s", len(turns), user_id, conversation_id)

    async def get_conversation(self, user_id: str, conversation_id: str) -> dict | None:
        """Get conversation metadata."""
        async with self._lock:
            cursor = await self._db.execute(
                "SELECT * FROM conversations WHERE user_id = ? AND conversation_id = ?",
                (user_id, conversation_id),
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def list_conversations(self, user_id: str) -> list[dict]:
        """Conversations of a user, most recently updated first."""
        async with self._lock:
            cursor = await self._db.execute(
                """SELECT conversation_id, surface, created_at, updated_at, turn_count
                   FROM conversations WHERE user_id = ? ORDER BY updated_at DESC, id DESC""",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        """Delete a conversation and its turns.

        Returns:
            True if deleted, False if not found

        """
        async with self._lock:
            cursor = await self._db.execute(
                "DELETE FROM conversations WHERE user_id = ? AND conversation_id = ?",
                (user_id, conversation_id),
            )
            await self._db.commit()
            return cursor.rowcount > 0
