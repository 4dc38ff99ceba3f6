"""
Hybrid memory for chat agents
=============================

Relational chats/messages/personas/cards plus one vector collection per
entity. Build the stores once and hand them to the consumers::

    from agf_memory import (
        BundleAssembler, Database, EntityLifecycle, OllamaEmbedder,
        QueryLayer, VectorCollectionStore,
    )

    db = Database()
    vectors = VectorCollectionStore()
    queries = QueryLayer(db, BundleAssembler(card_blobs, persona_blobs))
    entities = EntityLifecycle(
        db, vectors,
        card_blobs=card_blobs, persona_blobs=persona_blobs,
        embedder=OllamaEmbedder(),
    )
"""

from __future__ import annotations

from .bundles import BundleAssembler
from .embeddings import OllamaEmbedder
from .errors import (
    BlobLookupFailed,
    CollectionAlreadyExists,
    CollectionNotFound,
    DimensionMismatch,
    IntegrityViolation,
    NotFound,
    StoreError,
    StoreUnavailable,
    TransactionFailed,
)
from .lifecycle import EntityLifecycle
from .queries import QueryLayer
from .result import Err, Ok, Result
from .sql.db import Database
from .vector.collections import VectorCollectionStore

# Limit the public surface (keeps star-imports clean)
__all__ = [
    "BundleAssembler",
    "Database",
    "EntityLifecycle",
    "OllamaEmbedder",
    "QueryLayer",
    "VectorCollectionStore",
    "Ok",
    "Err",
    "Result",
    "StoreError",
    "NotFound",
    "CollectionNotFound",
    "CollectionAlreadyExists",
    "DimensionMismatch",
    "StoreUnavailable",
    "TransactionFailed",
    "BlobLookupFailed",
    "IntegrityViolation",
]
