"""Contracts for the collaborators this library consumes but does not own."""

from __future__ import annotations

from typing import Any, Dict, Protocol

import numpy as np

from .models import BlobBundle
from .result import Result


class BlobStore(Protocol):
    """On-disk card/persona storage, keyed by file name (cards) or name (personas)."""

    async def get(self, key: str) -> Result[BlobBundle, Exception]: ...

    async def post(self, data: Dict[str, Any]) -> Result[Dict[str, int], Exception]:
        """Store a new entity and return ``{"id": <relational id>}``."""
        ...

    async def put(self, id: int, data: Dict[str, Any]) -> Result[None, Exception]: ...


class Embedder(Protocol):
    async def embed(self, text: str) -> np.ndarray: ...
