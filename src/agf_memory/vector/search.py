import logging
from typing import List

from agf_memory.bundles import BundleAssembler
from agf_memory.collaborators import Embedder
from agf_memory.embeddings import is_degenerate
from agf_memory.models import RecalledMessage
from agf_memory.sql.repositories import MessagesRepo
from .collections import DEFAULT_KIND, VectorCollectionStore

logger = logging.getLogger(__name__)


async def recall_messages(
    *,
    store: VectorCollectionStore,
    embedder: Embedder,
    messages: MessagesRepo,
    entity_id: int,
    query: str,
    k: int = 5,
    kind: str = DEFAULT_KIND,
) -> List[RecalledMessage]:
    """Embed the query, search the entity's collection and join message rows."""

    qvec = await embedder.embed(query)

    # If the embedding failed (returned a zero vector), log and return empty results
    if is_degenerate(qvec):
        logger.info("Empty/degenerate query embedding (entity_id=%d)", entity_id)
        return []

    hits = await store.search(entity_id, qvec, k, kind=kind)
    if not hits:
        logger.info("Vector search returned no results (entity_id=%d)", entity_id)
        return []

    rows = await messages.rows_by_ids([h.id for h in hits])
    if not rows:
        logger.info("No rows found for vector search results (entity_id=%d)", entity_id)
        return []

    return BundleAssembler.recalled_messages(hits, rows)
