"""Chapter index: OOREP chapter id -> chapter display text."""

from __future__ import annotations

from collections.abc import Iterable

from ..models import UNKNOWN, RawChapter


class ChapterIndex:
    """In-memory chapter lookup used by the rubric transformer."""

    def __init__(self, chapters: Iterable[RawChapter] = ()):
        self._names: dict[int, str] = {}
        for chapter in chapters:
            self.add(chapter)

    def add(self, chapter: RawChapter) -> None:
        text = (chapter.text or "").strip()
        if text:
            self._names[chapter.external_id] = text

    def name_for(self, chapter_id: int | None, fallback: str | None = None) -> str:
        """Chapter text for ``chapter_id``; else ``fallback``; else "Unknown"."""
        if chapter_id is not None and chapter_id in self._names:
            return self._names[chapter_id]
        if fallback and fallback.strip():
            return fallback.strip()
        return UNKNOWN

    def __len__(self) -> int:
        return len(self._names)
