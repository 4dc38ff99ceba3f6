"""
Entity lifecycle
================

Keeps the vector index in step with the relational rows it shadows: each
persona and card gets its own collection when it is created, and loses it
when it is deleted. Chats are created here too, together with their greeting.

Card collections hold one point per remembered message (point id == message
id), which is what :meth:`EntityLifecycle.recall` searches.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from agf_memory.config import queries as queries_cfg

from .collaborators import BlobStore, Embedder
from .embeddings import is_degenerate
from .errors import (
    BlobLookupFailed,
    CollectionNotFound,
    IntegrityViolation,
    NotFound,
    StoreError,
)
from .models import RecalledMessage
from .queries import returns_result
from .result import Err
from .sql.db import Database
from .sql.repositories import CardsRepo, ChatsRepo, MessagesRepo, PersonasRepo
from .vector.collections import VectorCollectionStore
from .vector.search import recall_messages

logger = logging.getLogger(__name__)


def _unwrap_blob(res, what: str):
    if isinstance(res, Err):
        raise BlobLookupFailed(what, res.error) from res.error
    return res.value


def _posted_id(value, what: str) -> int:
    """Pull the new row id out of a ``post`` result value (``{"id": n}``)."""
    entity_id = value.get("id") if isinstance(value, Mapping) else None
    if isinstance(entity_id, bool) or not isinstance(entity_id, int):
        raise BlobLookupFailed(what, ValueError(f"post returned no integer id: {value!r}"))
    return entity_id


class EntityLifecycle:
    def __init__(
        self,
        db: Database,
        vectors: VectorCollectionStore,
        *,
        card_blobs: BlobStore,
        persona_blobs: BlobStore,
        embedder: Embedder,
    ):
        self.db = db
        self.vectors = vectors
        self.card_blobs = card_blobs
        self.persona_blobs = persona_blobs
        self.embedder = embedder
        self.chats = ChatsRepo(db)
        self.messages = MessagesRepo(db)
        self.personas = PersonasRepo(db)
        self.cards = CardsRepo(db)

    async def _create_with_collection(self, blobs: BlobStore, repo, data: Dict[str, Any], kind: str) -> int:
        what = f"new {kind}"
        entity_id = _posted_id(_unwrap_blob(await blobs.post(data), what), what)
        try:
            await self.vectors.create_collection(entity_id, kind=kind)
        except StoreError:
            # Without its collection the row would be half-created; take it back out.
            logger.warning("Collection for %s %d not created; removing row", kind, entity_id)
            await repo.delete(entity_id)
            raise
        logger.info("Created %s %d", kind, entity_id)
        return entity_id

    async def _delete_with_collection(self, repo, entity_id: int, kind: str) -> None:
        # collection before row: a failed drop leaves both in place
        try:
            await self.vectors.delete_collection(entity_id, kind=kind)
        except CollectionNotFound:
            logger.warning("%s %d had no collection to drop", kind.capitalize(), entity_id)
        await repo.delete(entity_id)
        logger.info("Deleted %s %d", kind, entity_id)

    # --- Personas --------------------------------------------------------------

    @returns_result
    async def create_persona(self, data: Dict[str, Any]) -> int:
        """Store a persona through the blob collaborator and open its collection."""
        return await self._create_with_collection(self.persona_blobs, self.personas, data, "persona")

    @returns_result
    async def update_persona(self, persona_id: int, data: Dict[str, Any]) -> None:
        _unwrap_blob(await self.persona_blobs.put(persona_id, data), f"persona {persona_id}")

    @returns_result
    async def delete_persona(self, persona_id: int) -> None:
        """Delete the persona row (its chats keep going without it) and its collection."""
        await self._delete_with_collection(self.personas, persona_id, "persona")

    # --- Cards -----------------------------------------------------------------

    @returns_result
    async def create_card(self, data: Dict[str, Any]) -> int:
        return await self._create_with_collection(self.card_blobs, self.cards, data, "card")

    @returns_result
    async def update_card(self, card_id: int, data: Dict[str, Any]) -> None:
        _unwrap_blob(await self.card_blobs.put(card_id, data), f"card {card_id}")

    @returns_result
    async def delete_card(self, card_id: int) -> None:
        """Delete the card, every chat using it, and its collection."""
        await self._delete_with_collection(self.cards, card_id, "card")

    # --- Chats -----------------------------------------------------------------

    @returns_result
    async def create_chat(
        self,
        card_id: int,
        persona_id: Optional[int] = None,
        greeting: Optional[str] = None,
    ) -> int:
        """
        Open a chat with a card, optionally as a persona.

        :param greeting: Opening character message, kept by ``reset_chat``.
        :returns: New chat id.
        """
        return await self.chats.create(card_id, persona_id, greeting)

    # --- Semantic memory -------------------------------------------------------

    @returns_result
    async def remember_message(self, card_id: int, message_id: int) -> bool:
        """
        Embed a stored message into its card's collection.

        :returns: ``False`` when the embedding came back empty and nothing
            was written.
        :raises IntegrityViolation: if the message's chat belongs to another card.
        """
        row = await self.messages.get(message_id)
        if row is None:
            raise NotFound(f"Message {message_id} does not exist")
        if int(row["card_id"]) != int(card_id):
            raise IntegrityViolation(
                f"Message {message_id} belongs to card {row['card_id']}, not card {card_id}"
            )

        vec = await self.embedder.embed(row["text"])
        if is_degenerate(vec):
            logger.warning("Skipping message %d: empty embedding", message_id)
            return False

        payload = {"chat_id": int(row["chat_id"]), "text": row["text"], "sender": row["sender"]}
        await self.vectors.insert(card_id, vec, payload, point_id=message_id, kind="card")
        return True

    @returns_result
    async def recall(
        self, card_id: int, query: str, limit: Optional[int] = None
    ) -> list[RecalledMessage]:
        """Messages remembered for ``card_id`` most similar to ``query``."""
        return await recall_messages(
            store=self.vectors,
            embedder=self.embedder,
            messages=self.messages,
            entity_id=card_id,
            query=query,
            k=limit or queries_cfg.RECALL_LIMIT,
            kind="card",
        )
