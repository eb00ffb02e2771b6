"""
Identity resolution between OOREP ids and knowledge-base ObjectIds.

The loaders register an entry whenever a rubric or remedy is inserted or
found to exist already; the mapping transformer only reads. A resolver lives
for exactly one pipeline run.
"""

from __future__ import annotations

from bson import ObjectId
from loguru import logger


class IdMap:
    """One direction of identity resolution: external id -> internal id."""

    def __init__(self, entity: str):
        self.entity = entity
        self._ids: dict[int, ObjectId] = {}

    def register(self, external_id: int, internal_id: ObjectId) -> None:
        previous = self._ids.get(external_id)
        if previous is not None and previous != internal_id:
            logger.debug(
                "{} {} re-registered: {} -> {}", self.entity, external_id, previous, internal_id
            )
        self._ids[external_id] = internal_id

    def resolve(self, external_id: int) -> ObjectId | None:
        """Return the internal id, or None when the entity was never loaded."""
        return self._ids.get(external_id)

    def __contains__(self, external_id: object) -> bool:
        return external_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


class IdentityResolver:
    """
    Per-run identity maps for rubrics and remedies.

    Constructed by the orchestrator and handed to the loaders (writers) and
    the mapping transformer (reader).
    """

    def __init__(self) -> None:
        self.rubrics = IdMap("rubric")
        self.remedies = IdMap("remedy")

    def stats(self) -> dict[str, int]:
        return {"rubrics": len(self.rubrics), "remedies": len(self.remedies)}
