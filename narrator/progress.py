"""Reading progress: resumable pointer and completed chapters per book."""

import json
import logging
import os

from narrator.models import ProgressRecord

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Persists the last-read position of each book.

    Backed by a JSON file when ``path`` is given, in memory otherwise. The
    file holds one object per book id::

        {"<book>": {"last_read_chapter_id": "...", "last_read_chunk_index": 4,
                    "completed_chapter_ids": ["..."]}}
    """

    def __init__(self, path: str | None = None):
        self.path = path
        self._records: dict[str, ProgressRecord] = {}
        if path is not None:
            self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Malformed progress file: %s — starting fresh", self.path)
            return
        if not isinstance(data, dict):
            logger.warning("Progress file is not an object: %s — starting fresh", self.path)
            return
        for book_id, entry in data.items():
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed progress entry for %s", book_id)
                continue
            self._records[book_id] = ProgressRecord(
                book_id=book_id,
                chapter_id=entry.get("last_read_chapter_id"),
                chunk_index=entry.get("last_read_chunk_index", 0),
                completed_chapter_ids=set(entry.get("completed_chapter_ids", [])),
            )

    def _save(self) -> None:
        if self.path is None:
            return
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        data = {
            book_id: {
                "last_read_chapter_id": record.chapter_id,
                "last_read_chunk_index": record.chunk_index,
                "completed_chapter_ids": sorted(record.completed_chapter_ids),
            }
            for book_id, record in self._records.items()
        }
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)

    def record(self, book_id: str, chapter_id: str, chunk_index: int, completed: bool) -> ProgressRecord:
        """Store the resumable pointer; mark the chapter completed if asked."""
        record = self._records.setdefault(book_id, ProgressRecord(book_id=book_id))
        record.chapter_id = chapter_id
        record.chunk_index = chunk_index
        if completed:
            record.completed_chapter_ids.add(chapter_id)
        self._save()
        return record

    def resume_index_for(self, book_id: str, chapter_id: str) -> int:
        """Stored chunk index if ``chapter_id`` is the book's last-read chapter, else 0."""
        record = self._records.get(book_id)
        if record is None or record.chapter_id != chapter_id:
            return 0
        return record.chunk_index

    def get(self, book_id: str) -> ProgressRecord | None:
        return self._records.get(book_id)


class ProgressReporter:
    """Forwards orchestrator progress events for one book to a tracker."""

    def __init__(self, tracker: ProgressTracker, book_id: str):
        self.tracker = tracker
        self.book_id = book_id

    def __call__(self, chapter_id: str, chunk_index: int, is_last_chunk: bool) -> None:
        logger.debug("Progress %s/%s at chunk %d%s", self.book_id, chapter_id, chunk_index,
                     " (completed)" if is_last_chunk else "")
        self.tracker.record(self.book_id, chapter_id, chunk_index, completed=is_last_chunk)
