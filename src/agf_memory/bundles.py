"""
Bundle assembly
===============

Merges relational rows with blob-store lookups (card files, persona avatars)
and vector hits into render-ready bundles. Holds no state and caches nothing:
every call goes back to both stores.

A failed blob lookup raises :class:`BlobLookupFailed`; nothing is replaced by
a default here. Callers that can live without an avatar decide that
themselves.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Iterable, Sequence

from .collaborators import BlobStore
from .errors import BlobLookupFailed, IntegrityViolation
from .models import (
    BlobBundle,
    CardBundle,
    ChatSearchItem,
    Message,
    PersonaBundle,
    PersonaData,
    RecalledMessage,
    RecentChat,
    SearchHit,
)
from .result import Err

logger = logging.getLogger(__name__)


async def _lookup(store: BlobStore, key: str) -> BlobBundle:
    try:
        res = await store.get(key)
    except Exception as exc:
        raise BlobLookupFailed(key, exc) from exc
    if isinstance(res, Err):
        raise BlobLookupFailed(key, res.error) from res.error
    return res.value


def _card_file_name(row: sqlite3.Row, id_column: str) -> str:
    file_name = row["file_name"]
    if file_name is None:
        raise IntegrityViolation(f"Chat {row[id_column]} references a missing card")
    return file_name


def persona_data(row: sqlite3.Row) -> PersonaData:
    return PersonaData(
        id=int(row["id"]),
        name=row["name"],
        description=row["description"],
        is_default=int(row["is_default"]),
    )


class BundleAssembler:
    def __init__(self, cards: BlobStore, personas: BlobStore):
        self.cards = cards
        self.personas = personas

    async def card(self, file_name: str) -> CardBundle:
        blob = await _lookup(self.cards, file_name)
        return CardBundle(data=blob.data, avatar_uri=blob.avatar_uri)

    async def card_list(self, file_names: Iterable[str]) -> list[CardBundle]:
        """Look cards up one by one, stopping at the first failure."""
        bundles: list[CardBundle] = []
        for file_name in file_names:
            bundles.append(await self.card(file_name))
        return bundles

    async def persona(self, data: PersonaData) -> PersonaBundle:
        blob = await _lookup(self.personas, data.name)
        return PersonaBundle(data=data, avatar_uri=blob.avatar_uri)

    async def persona_list(self, rows: Iterable[sqlite3.Row]) -> list[PersonaBundle]:
        bundles: list[PersonaBundle] = []
        for row in rows:
            bundles.append(await self.persona(persona_data(row)))
        return bundles

    async def chat_search_items(self, rows: Sequence[sqlite3.Row]) -> list[ChatSearchItem]:
        """Rows are ``(id, last_message, file_name)``; order is preserved."""

        async def _one(row: sqlite3.Row) -> ChatSearchItem:
            bundle = await self.card(_card_file_name(row, "id"))
            return ChatSearchItem(
                id=int(row["id"]),
                character_name=bundle.character_name,
                character_avatar_uri=bundle.avatar_uri or "",
                last_message=row["last_message"],
            )

        return list(await asyncio.gather(*(_one(r) for r in rows)))

    async def recent_chats(self, rows: Sequence[sqlite3.Row]) -> list[RecentChat]:
        """Rows are ``(chat_id, last_message, file_name)``; order is preserved."""

        async def _one(row: sqlite3.Row) -> RecentChat:
            bundle = await self.card(_card_file_name(row, "chat_id"))
            return RecentChat(
                chat_id=int(row["chat_id"]),
                last_message=row["last_message"],
                name=bundle.character_name,
                avatar_uri=bundle.avatar_uri,
            )

        return list(await asyncio.gather(*(_one(r) for r in rows)))

    @staticmethod
    def recalled_messages(
        hits: Sequence[SearchHit], rows: Sequence[sqlite3.Row]
    ) -> list[RecalledMessage]:
        """
        Join vector hits with message rows in hit order.

        Hits whose message row is gone (deleted or reset since indexing) are
        skipped.
        """
        rows_by_id = {int(r["id"]): r for r in rows}
        ordered: list[RecalledMessage] = []
        for hit in hits:
            row = rows_by_id.get(hit.id)
            if row is None:
                logger.debug("Dropping vector hit %d without a message row", hit.id)
                continue
            ordered.append(
                RecalledMessage(
                    message=Message(
                        id=int(row["id"]),
                        text=row["text"],
                        sender=row["sender"],
                        timestamp=row["timestamp"],
                    ),
                    chat_id=int(row["chat_id"]),
                    score=hit.score,
                )
            )
        return ordered
