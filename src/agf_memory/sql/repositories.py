"""
Repositories (SQL-only)
=======================
- No blob or embedding logic here; pure CRUD and selects.
- Every value is bound as a parameter.
"""

from __future__ import annotations
from typing import Optional, Sequence
import sqlite3

from .db import Database

# Latest character-authored message per chat, shared by the chat listings.
_LAST_CHARACTER_MESSAGE = """
    (SELECT m.text
     FROM messages m
     WHERE m.chat_id = c.id AND m.sender_type = 'character'
     ORDER BY m.id DESC
     LIMIT 1)
"""


class ChatsRepo:
    """Async helpers for the ``chats`` table."""

    def __init__(self, db: Database):
        self.db = db

    async def create(
        self,
        card_id: int,
        persona_id: Optional[int] = None,
        greeting: Optional[str] = None,
    ) -> int:
        """
        Insert a chat and, optionally, its opening character message.

        Both rows are written in one transaction.

        :returns: New chat id.
        """
        statements = ["INSERT INTO chats (card_id, persona_id) VALUES (?, ?)"]
        params: list[Sequence] = [(card_id, persona_id)]
        if greeting is not None:
            statements.append(
                "INSERT INTO messages (chat_id, text, sender_type) "
                "VALUES (last_insert_rowid(), ?, 'character')"
            )
            params.append((greeting,))
        rowids = await self.db.run_as_transaction(statements, params)
        return rowids[0]

    async def delete(self, chat_id: int) -> None:
        await self.db.run("DELETE FROM chats WHERE id = ?", (chat_id,))

    async def search_rows(self) -> list[sqlite3.Row]:
        """Return ``(id, last_message, file_name)`` for every chat, newest id first."""
        sql = f"""
            SELECT
              c.id,
              {_LAST_CHARACTER_MESSAGE} AS last_message,
              ca.file_name
            FROM chats c
            LEFT JOIN cards ca ON ca.id = c.card_id
            ORDER BY c.id DESC
        """
        return await self.db.all(sql)

    async def recent_rows(self, limit: int) -> list[sqlite3.Row]:
        """Return ``(chat_id, last_message, file_name)`` by last activity."""
        sql = f"""
            SELECT
              c.id AS chat_id,
              {_LAST_CHARACTER_MESSAGE} AS last_message,
              ca.file_name
            FROM chats c
            LEFT JOIN cards ca ON ca.id = c.card_id
            ORDER BY COALESCE(c.updated_at, c.inserted_at) DESC, c.id DESC
            LIMIT ?
        """
        return await self.db.all(sql, (limit,))

    async def card_row(self, chat_id: int) -> Optional[sqlite3.Row]:
        """
        Return ``(chat_id, card_id, file_name)`` for a chat.

        ``None`` means the chat does not exist; a ``NULL`` ``file_name`` means
        its card row is missing.
        """
        sql = """
            SELECT chats.id AS chat_id, chats.card_id, cards.file_name
            FROM chats
            LEFT JOIN cards ON chats.card_id = cards.id
            WHERE chats.id = ?
        """
        return await self.db.get(sql, (chat_id,))

    async def persona_row(self, chat_id: int) -> Optional[sqlite3.Row]:
        """
        Return the persona columns for a chat.

        ``None`` means the chat does not exist; a ``NULL`` ``id`` means the chat
        has no persona.
        """
        sql = """
            SELECT p.id, p.name, p.description, p.is_default
            FROM chats c
            LEFT JOIN personas p ON p.id = c.persona_id
            WHERE c.id = ?
        """
        return await self.db.get(sql, (chat_id,))


class MessagesRepo:
    """Async helpers for the ``messages`` table."""

    def __init__(self, db: Database):
        self.db = db

    async def delete(self, message_id: int) -> None:
        await self.db.run("DELETE FROM messages WHERE id = ?", (message_id,))

    async def reset(self, chat_id: int) -> int:
        """
        Delete every message of ``chat_id`` except the first one.

        One statement, so no writer can slip in between reading the first
        message and deleting the rest.

        :returns: Number of rows removed.
        """
        sql = """
            DELETE FROM messages
            WHERE chat_id = ?
              AND id != (
                SELECT id
                FROM messages
                WHERE chat_id = ?
                ORDER BY id
                LIMIT 1
              )
        """
        return await self.db.run(sql, (chat_id, chat_id))

    async def history(
        self, chat_id: int, start_id: Optional[int], limit: int
    ) -> list[sqlite3.Row]:
        """Return messages with ``id <= start_id`` (when given), oldest first."""
        sql = """
            SELECT id, text, sender_type AS sender, inserted_at AS timestamp
            FROM messages
            WHERE chat_id = ? AND (? IS NULL OR id <= ?)
            ORDER BY id
            LIMIT ?
        """
        return await self.db.all(sql, (chat_id, start_id, start_id, limit))

    async def insert_pair(self, chat_id: int, user_text: str, character_text: str) -> list[int]:
        """
        Insert one conversation turn atomically.

        :returns: ``[user_message_id, character_message_id]``.
        """
        statements = [
            "INSERT INTO messages (chat_id, text, sender_type) VALUES (?, ?, 'user')",
            "INSERT INTO messages (chat_id, text, sender_type) VALUES (?, ?, 'character')",
        ]
        params = [(chat_id, user_text), (chat_id, character_text)]
        return await self.db.run_as_transaction(statements, params)

    async def get(self, message_id: int) -> Optional[sqlite3.Row]:
        """Message row plus the ``card_id`` of the chat it belongs to."""
        sql = """
            SELECT m.id, m.chat_id, c.card_id, m.text, m.sender_type AS sender,
                   m.inserted_at AS timestamp
            FROM messages m
            JOIN chats c ON c.id = m.chat_id
            WHERE m.id = ?
        """
        return await self.db.get(sql, (message_id,))

    async def rows_by_ids(self, ids: list[int]) -> list[sqlite3.Row]:
        """Fetch rows by primary key list."""
        if not ids:
            return []
        ph = ",".join(["?"] * len(ids))
        sql = f"""
            SELECT id, chat_id, text, sender_type AS sender, inserted_at AS timestamp
            FROM messages
            WHERE id IN ({ph})
        """
        return await self.db.all(sql, ids)


class PersonasRepo:
    """Async helpers for the ``personas`` table."""

    def __init__(self, db: Database):
        self.db = db

    async def all(self) -> list[sqlite3.Row]:
        return await self.db.all(
            "SELECT id, name, description, is_default FROM personas ORDER BY id"
        )

    async def delete(self, persona_id: int) -> int:
        return await self.db.run("DELETE FROM personas WHERE id = ?", (persona_id,))


class CardsRepo:
    """Async helpers for the ``cards`` table."""

    def __init__(self, db: Database):
        self.db = db

    async def file_names(self) -> list[str]:
        rows = await self.db.all("SELECT file_name FROM cards ORDER BY id")
        return [r["file_name"] for r in rows]

    async def delete(self, card_id: int) -> int:
        return await self.db.run("DELETE FROM cards WHERE id = ?", (card_id,))
