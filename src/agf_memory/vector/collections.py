"""Async per-entity collection manager on top of the Milvus vector index."""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar

import numpy as np
from pymilvus import (
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)
from pymilvus.exceptions import MilvusException

from agf_memory.config import milvus
from agf_memory.errors import (
    CollectionAlreadyExists,
    CollectionNotFound,
    DimensionMismatch,
    StoreError,
    StoreUnavailable,
)
from agf_memory.models import SearchHit

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_KIND = "entity"


def _as_vector(v, dim: int) -> list[float]:
    """Return ``v`` as a writable float32 list of exactly ``dim`` components."""

    # NOTE: ``np.asarray`` can return a read-only view when ``v`` exposes a
    # Python buffer (e.g. ``array('f')``), and ``np.nan_to_num`` below writes
    # in place. Take a writable copy up-front.
    arr = np.array(v, dtype=np.float32, copy=True).reshape(-1)
    if arr.shape[0] != dim:
        raise DimensionMismatch(dim, arr.shape[0])
    np.nan_to_num(arr, copy=False)
    return arr.tolist()


class VectorCollectionStore:
    """
    One Milvus collection per entity, named ``<prefix><kind>_<entity_id>``.

    ``kind`` is the entity class (``"card"``, ``"persona"``). Row ids of
    different classes overlap, so card 1 and persona 1 get separate
    collections.

    Every collection has the same schema: ``id`` (INT64 primary key, equal to
    the owning row id), ``embedding`` (FLOAT_VECTOR of ``dim``) and
    ``payload`` (JSON), indexed with HNSW under cosine distance.

    ``connect`` may be called explicitly; any operation on an unconnected
    store connects first and reuses that connection afterwards.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[str] = None,
        *,
        alias: Optional[str] = None,
        prefix: Optional[str] = None,
        dim: Optional[int] = None,
        mmap_threshold: Optional[int] = None,
    ):
        self.host = host or milvus.MILVUS_HOST
        self.port = port or milvus.MILVUS_PORT
        self.alias = alias or milvus.MILVUS_ALIAS
        self.prefix = milvus.MILVUS_COLLECTION_PREFIX if prefix is None else prefix
        self.dim = dim or milvus.EMB_DIM
        self.mmap_threshold = mmap_threshold or milvus.MILVUS_MMAP_THRESHOLD
        self._connected = False
        self._collections: Dict[str, Collection] = {}
        self._mmapped: set[str] = set()
        self._lock = threading.Lock()

    # --- Lifecycle -----------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connected

    def _ensure_connected(self) -> None:
        if self._connected:
            return
        with self._lock:
            if self._connected:
                return
            uri = f"http://{self.host}:{self.port}"
            try:
                connections.connect(alias=self.alias, uri=uri)
            except MilvusException as exc:
                raise StoreUnavailable(f"Milvus unreachable at {uri}: {exc}") from exc
            self._connected = True
            logger.info("Connected to Milvus at %s (alias=%s)", uri, self.alias)

    async def connect(self) -> None:
        await asyncio.to_thread(self._ensure_connected)

    async def close(self) -> None:
        def _run() -> None:
            with self._lock:
                if not self._connected:
                    return
                connections.disconnect(self.alias)
                self._connected = False
                self._collections.clear()
                self._mmapped.clear()
            logger.info("Disconnected from Milvus (alias=%s)", self.alias)

        await asyncio.to_thread(_run)

    async def _call(self, fn: Callable[[], T]) -> T:
        """Run a blocking Milvus call in a worker thread, connected first."""

        def _run() -> T:
            self._ensure_connected()
            try:
                return fn()
            except MilvusException as exc:
                raise StoreError(f"Milvus call failed: {exc}") from exc

        return await asyncio.to_thread(_run)

    # --- Helpers -------------------------------------------------------------

    def collection_name(self, entity_id: int, kind: str = DEFAULT_KIND) -> str:
        # ids are only unique within one table, so the kind is part of the name
        if not kind.isidentifier():
            raise ValueError(f"Invalid entity kind {kind!r}")
        return f"{self.prefix}{kind}_{int(entity_id)}"

    def _schema(self) -> CollectionSchema:
        fields = [
            FieldSchema(name="id", dtype=DataType.INT64, is_primary=True, auto_id=False),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.dim),
            FieldSchema(name="payload", dtype=DataType.JSON),
        ]
        return CollectionSchema(fields, description="Entity embeddings")

    def _open(self, name: str) -> Collection:
        """Return the loaded collection ``name`` or raise ``CollectionNotFound``."""
        if not utility.has_collection(name, using=self.alias):
            self._collections.pop(name, None)
            raise CollectionNotFound(name)
        col = self._collections.get(name)
        if col is None:
            col = Collection(name, using=self.alias)
            col.load()
            self._collections[name] = col
        return col

    def _maybe_enable_mmap(self, name: str, col: Collection) -> None:
        """Move a large collection's data and index to memory-mapped disk storage."""
        if name in self._mmapped or col.num_entities < self.mmap_threshold:
            return
        col.release()
        col.set_properties({"mmap.enabled": True})
        col.load()
        self._mmapped.add(name)
        logger.info(
            "Collection %s reached %d points; switched to mmap storage",
            name,
            self.mmap_threshold,
        )

    # --- Operations ----------------------------------------------------------

    async def has_collection(self, entity_id: int, *, kind: str = DEFAULT_KIND) -> bool:
        name = self.collection_name(entity_id, kind)
        return await self._call(lambda: utility.has_collection(name, using=self.alias))

    async def create_collection(self, entity_id: int, *, kind: str = DEFAULT_KIND) -> None:
        """
        Create, index and load the collection for ``entity_id``.

        :raises CollectionAlreadyExists: if the collection is already there.
        """
        name = self.collection_name(entity_id, kind)
        index_params = {
            "index_type": "HNSW",
            "metric_type": "COSINE",
            "params": {
                "M": milvus.MILVUS_HNSW_M,
                "efConstruction": milvus.MILVUS_HNSW_EF_CONSTRUCTION,
            },
        }

        def _run() -> None:
            if utility.has_collection(name, using=self.alias):
                raise CollectionAlreadyExists(name)
            col = Collection(name, self._schema(), using=self.alias)
            col.create_index("embedding", index_params)
            col.load()
            self._collections[name] = col

        await self._call(_run)
        logger.info("Created collection %s (dim=%d, metric=COSINE)", name, self.dim)

    async def insert(
        self,
        entity_id: int,
        vector,
        payload: Optional[Dict[str, Any]] = None,
        *,
        point_id: Optional[int] = None,
        kind: str = DEFAULT_KIND,
    ) -> None:
        """
        Insert or overwrite one point and wait until it is persisted.

        :param entity_id: Owning entity; selects the collection.
        :param vector: Sequence or array-like embedding of length ``dim``.
        :param payload: Searchable metadata returned as-is by :meth:`search`.
        :param point_id: Id of the row the vector belongs to. Defaults to
            ``entity_id`` (the entity's own vector).
        :param kind: Entity class the id belongs to; selects the collection.
        :raises DimensionMismatch: if ``vector`` has the wrong width.
        :raises CollectionNotFound: if the collection does not exist.
        """
        vec = _as_vector(vector, self.dim)
        name = self.collection_name(entity_id, kind)
        pid = entity_id if point_id is None else point_id
        row = {"id": int(pid), "embedding": vec, "payload": dict(payload or {})}

        def _run() -> None:
            col = self._open(name)
            col.upsert([row])
            col.flush()
            self._maybe_enable_mmap(name, col)

        await self._call(_run)

    async def search(
        self, entity_id: int, query_vector, limit: int, *, kind: str = DEFAULT_KIND
    ) -> List[SearchHit]:
        """
        Return the ``limit`` points most similar to ``query_vector``.

        Hits are ordered by cosine similarity, highest first. The order of
        equal scores is whatever the index returns.

        :raises CollectionNotFound: if the collection does not exist.
        """
        vec = _as_vector(query_vector, self.dim)
        name = self.collection_name(entity_id, kind)

        def _run() -> List[SearchHit]:
            col = self._open(name)
            if limit <= 0:
                return []
            res = col.search(
                data=[vec],
                anns_field="embedding",
                param={
                    "metric_type": "COSINE",
                    "params": {"ef": max(milvus.MILVUS_SEARCH_EF, limit)},
                },
                limit=limit,
                output_fields=["payload"],
                consistency_level="Strong",
            )
            hits = res[0] if res else []
            return [
                SearchHit(
                    id=int(h.id),
                    score=float(h.score),
                    payload=dict(h.entity.get("payload") or {}),
                )
                for h in hits
            ]

        return await self._call(_run)

    async def count(self, entity_id: int, *, kind: str = DEFAULT_KIND) -> int:
        name = self.collection_name(entity_id, kind)
        return await self._call(lambda: int(self._open(name).num_entities))

    async def delete_collection(self, entity_id: int, *, kind: str = DEFAULT_KIND) -> bool:
        """
        Drop the collection and every point in it.

        :raises CollectionNotFound: if the collection does not exist.
        """
        name = self.collection_name(entity_id, kind)

        def _run() -> bool:
            if not utility.has_collection(name, using=self.alias):
                raise CollectionNotFound(name)
            utility.drop_collection(name, using=self.alias)
            self._collections.pop(name, None)
            self._mmapped.discard(name)
            return True

        dropped = await self._call(_run)
        logger.info("Dropped collection %s", name)
        return dropped
