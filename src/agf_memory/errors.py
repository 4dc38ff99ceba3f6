"""
Shared error types for the relational and vector stores.
"""


class StoreError(RuntimeError):
    """Base class for every failure surfaced by this library."""


class NotFound(StoreError):
    """A row, collection or point is absent."""


class CollectionNotFound(NotFound):
    def __init__(self, name: str):
        super().__init__(f"Collection '{name}' does not exist")
        self.name = name


class CollectionAlreadyExists(StoreError):
    def __init__(self, name: str):
        super().__init__(f"Collection '{name}' already exists")
        self.name = name


class DimensionMismatch(StoreError, ValueError):
    def __init__(self, expected: int, got: int):
        super().__init__(f"Expected embedding of dim {expected}, got {got}")
        self.expected = expected
        self.got = got


class StoreUnavailable(StoreError):
    """Connection to the relational engine or the vector index failed."""


class TransactionFailed(StoreError):
    """A statement in a batch failed; the whole batch was rolled back."""


class BlobLookupFailed(StoreError):
    def __init__(self, key, cause: BaseException | None = None):
        super().__init__(f"Blob lookup failed for {key!r}: {cause}")
        self.key = key
        self.cause = cause


class IntegrityViolation(StoreError):
    """Relational data breaks an invariant (e.g. a chat without its card)."""
