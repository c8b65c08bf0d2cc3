"""Data models for chapter narration."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Chunk:
    index: int
    text: str


@dataclass(frozen=True)
class Voice:
    id: str
    display_name: str


class PlaybackState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


@dataclass
class PlaybackSession:
    """Mutable playback context bound to one chapter's chunks.

    ``epoch`` invalidates superseded playback work; ``generation`` invalidates
    cache writes (preloads) when the cache as a whole is dropped.
    """

    chunks: list[Chunk]
    book_id: str | None = None
    chapter_id: str | None = None
    current_index: int = 0
    epoch: int = 0
    generation: int = 0
    cache: dict[int, bytes] = field(default_factory=dict)
    state: PlaybackState = PlaybackState.IDLE
    error: str | None = None
    pending_advance: bool = False  # silent pause elapsed while paused
    pause_requested: bool = False  # pause() arrived while loading

    @property
    def is_last_chunk(self) -> bool:
        return self.current_index == len(self.chunks) - 1

    @property
    def current_chunk(self) -> Chunk | None:
        if 0 <= self.current_index < len(self.chunks):
            return self.chunks[self.current_index]
        return None


@dataclass
class ProgressRecord:
    book_id: str
    chapter_id: str | None = None      # last-read chapter
    chunk_index: int = 0               # last-read chunk within that chapter
    completed_chapter_ids: set[str] = field(default_factory=set)
