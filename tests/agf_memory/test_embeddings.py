import asyncio
from types import SimpleNamespace

import numpy as np
import pytest

from agf_memory.embeddings import OllamaEmbedder, is_degenerate
from agf_memory.errors import DimensionMismatch


class FakeOllama:
    def __init__(self, width=384, fail=False):
        self.width = width
        self.fail = fail
        self.calls = []

    async def embed(self, model, input):
        self.calls.append((model, input))
        if self.fail:
            raise ConnectionError("ollama is down")
        return SimpleNamespace(embeddings=[[0.5] * self.width])


def test_embed_uses_configured_model():
    client = FakeOllama()
    embedder = OllamaEmbedder("all-minilm", client=client)
    vec = asyncio.run(embedder.embed("hello"))
    assert vec.shape == (384,)
    assert vec.dtype == np.float32
    assert client.calls == [("all-minilm", "hello")]


def test_empty_text_skips_the_model():
    client = FakeOllama()
    vec = asyncio.run(OllamaEmbedder(client=client).embed(""))
    assert is_degenerate(vec)
    assert client.calls == []


def test_transport_error_returns_zeros():
    vec = asyncio.run(OllamaEmbedder(client=FakeOllama(fail=True)).embed("hello"))
    assert is_degenerate(vec)
    assert vec.shape == (384,)


def test_wrong_model_width():
    with pytest.raises(DimensionMismatch):
        asyncio.run(OllamaEmbedder(client=FakeOllama(width=768)).embed("hello"))
