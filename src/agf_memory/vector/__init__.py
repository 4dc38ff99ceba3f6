"""Vector index layer.

One Milvus collection per entity (card or persona). ``collections`` owns the
collection lifecycle and point data; ``search`` turns a text query into
recalled message rows.
"""

from .collections import VectorCollectionStore

__all__ = ["VectorCollectionStore"]
