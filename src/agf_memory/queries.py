"""
Public query façade
===================

Stable, async API over the relational store and the blob collaborators::

    layer = QueryLayer(db, BundleAssembler(card_blobs, persona_blobs))
    res = await layer.get_recent_chats()

Every operation returns :class:`~agf_memory.result.Ok` or
:class:`~agf_memory.result.Err`; store failures never propagate as
exceptions past this module. Any failure inside an aggregate aborts the whole
operation, so partial results are never returned.
"""

from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable, Optional, ParamSpec, TypeVar

from agf_memory.config import queries as queries_cfg

from .bundles import BundleAssembler, persona_data
from .errors import IntegrityViolation, NotFound, StoreError
from .models import CardBundle, ChatSearchItem, Message, PersonaBundle, RecentChat
from .result import Err, Ok, Result
from .sql.db import Database
from .sql.repositories import CardsRepo, ChatsRepo, MessagesRepo, PersonasRepo

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def returns_result(
    fn: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[Result[T, StoreError]]]:
    """Wrap an async operation so ``StoreError`` becomes ``Err``."""

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, StoreError]:
        try:
            return Ok(await fn(*args, **kwargs))
        except StoreError as e:
            logger.error("%s failed: %s", fn.__name__, e)
            return Err(e)

    return wrapper


class QueryLayer:
    """Chats, messages, personas and cards, assembled into bundles."""

    def __init__(self, db: Database, assembler: BundleAssembler):
        self.db = db
        self.assembler = assembler
        self.chats = ChatsRepo(db)
        self.messages = MessagesRepo(db)
        self.personas = PersonasRepo(db)
        self.cards = CardsRepo(db)

    # --- Writes ----------------------------------------------------------------

    @returns_result
    async def delete_message(self, message_id: int) -> None:
        await self.messages.delete(message_id)

    @returns_result
    async def delete_chat(self, chat_id: int) -> None:
        """Delete a chat; its messages go with it. Absent chats are not an error."""
        await self.chats.delete(chat_id)

    @returns_result
    async def reset_chat(self, chat_id: int) -> None:
        """
        Delete all messages in the chat except the first one.

        :param chat_id: The chat to reset.
        """
        removed = await self.messages.reset(chat_id)
        logger.info("Reset chat %d (%d messages removed)", chat_id, removed)

    @returns_result
    async def insert_message_pair(
        self, chat_id: int, user_message: str, character_message: str
    ) -> tuple[int, int]:
        """
        Persist one conversation turn; both messages or neither.

        :returns: ``(user_message_id, character_message_id)``.
        """
        user_id, character_id = await self.messages.insert_pair(
            chat_id, user_message, character_message
        )
        return user_id, character_id

    # --- Chat listings ---------------------------------------------------------

    @returns_result
    async def get_chat_search_items(self) -> list[ChatSearchItem]:
        """Every chat with its character and last character message, newest first."""
        rows = await self.chats.search_rows()
        return await self.assembler.chat_search_items(rows)

    @returns_result
    async def get_recent_chats(self, limit: Optional[int] = None) -> list[RecentChat]:
        """
        Chats ordered by last activity (``updated_at``, else ``inserted_at``).

        :param limit: Maximum number of chats; defaults to
            ``RECENT_CHATS_LIMIT`` (20).
        """
        if limit is None:
            limit = queries_cfg.RECENT_CHATS_LIMIT
        rows = await self.chats.recent_rows(limit)
        return await self.assembler.recent_chats(rows)

    @returns_result
    async def get_chat_history(
        self,
        chat_id: int,
        start_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[Message]:
        """
        One page of a chat's messages, oldest first.

        :param start_id: Only messages with ``id <= start_id`` when given.
        :param limit: Page size; defaults to ``HISTORY_PAGE_SIZE`` (25).
        """
        if limit is None:
            limit = queries_cfg.HISTORY_PAGE_SIZE
        rows = await self.messages.history(chat_id, start_id, limit)
        return [
            Message(id=r["id"], text=r["text"], sender=r["sender"], timestamp=r["timestamp"])
            for r in rows
        ]

    # --- Bundles ---------------------------------------------------------------

    @returns_result
    async def get_persona_bundle(self, chat_id: int) -> PersonaBundle:
        row = await self.chats.persona_row(chat_id)
        if row is None:
            raise NotFound(f"Chat {chat_id} does not exist")
        if row["id"] is None:
            raise NotFound(f"Chat {chat_id} has no persona")
        return await self.assembler.persona(persona_data(row))

    @returns_result
    async def get_all_persona_bundles(self) -> list[PersonaBundle]:
        rows = await self.personas.all()
        return await self.assembler.persona_list(rows)

    @returns_result
    async def get_card_bundle(self, chat_id: int) -> CardBundle:
        row = await self.chats.card_row(chat_id)
        if row is None:
            raise NotFound(f"Chat {chat_id} does not exist")
        if row["file_name"] is None:
            raise IntegrityViolation(
                f"Chat {chat_id} references missing card {row['card_id']}"
            )
        return await self.assembler.card(row["file_name"])

    @returns_result
    async def get_card_bundles(self) -> list[CardBundle]:
        file_names = await self.cards.file_names()
        return await self.assembler.card_list(file_names)
