"""
Error taxonomy for the seeding pipeline.

Fatal errors abort the run before (or instead of) any further loading.
StoreError subclasses describe per-record or per-batch problems that the
loaders count and recover from.
"""


class SeedError(Exception):
    """Base class for all seeding errors."""


class SourceUnavailableError(SeedError):
    """The OOREP dump file is missing or the source database is unreachable."""


class StoreUnavailableError(SeedError):
    """The target store cannot be reached (after retries)."""


class StoreError(SeedError):
    """A single write or a batch write was rejected by the store."""


class DuplicateRecordError(StoreError):
    """An insert hit a unique natural-key index."""

    def __init__(self, collection: str, key: dict | None = None):
        self.collection = collection
        self.key = key or {}
        super().__init__(f"Duplicate record in {collection}: {self.key}")


class BulkWriteFailedError(StoreError):
    """An unordered bulk write did not complete."""

    def __init__(self, collection: str, message: str, write_errors: int = 0):
        self.collection = collection
        self.write_errors = write_errors
        super().__init__(f"Bulk write to {collection} failed: {message}")
