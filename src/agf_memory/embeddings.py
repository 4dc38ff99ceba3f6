"""
Embedding utilities
===================

Centralizes embedding logic so the rest of the codebase does not care
about model details (dimensionality, provider, etc.).
"""

from __future__ import annotations
import logging
from typing import Optional

import numpy as np
from ollama import AsyncClient

from agf_memory.config import embeddings as emb_cfg, milvus
from agf_memory.errors import DimensionMismatch

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """``embed(text) -> vector`` backed by a local Ollama server."""

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        host: Optional[str] = None,
        dim: Optional[int] = None,
        client: Optional[AsyncClient] = None,
    ):
        self.model = model or emb_cfg.EMB_MODEL_ID
        self.dim = dim or milvus.EMB_DIM
        self._client = client or AsyncClient(host=host or emb_cfg.OLLAMA_HOST)

    def _zeros(self) -> np.ndarray:
        return np.zeros((self.dim,), dtype=np.float32)

    async def embed(self, text: str) -> np.ndarray:
        """
        Return embedding vector for ``text``.

        :param text: Input string to embed.
        :returns: ``np.ndarray`` of shape ``(dim,)``. On transport errors
            returns zeros.
        :raises DimensionMismatch: if the model answers with another width.
        """
        if not text:
            return self._zeros()

        try:
            resp = await self._client.embed(model=self.model, input=text)
        except Exception as e:
            logger.error(f"Error embedding text: {e}. Defaulting to zeros vector.")
            return self._zeros()

        vec = np.asarray(resp.embeddings[0], dtype=np.float32)
        if vec.size != self.dim:
            raise DimensionMismatch(self.dim, vec.size)
        return vec


def is_degenerate(vec: np.ndarray) -> bool:
    """True for the all-zero vector returned when embedding failed."""
    return not np.any(vec)
