"""Tests for constants, models and errors."""

import dataclasses

import pytest

from narrator import constants
from narrator.errors import NarratorError, SegmentationError, StaleOperation, SynthesisError, DeviceError
from narrator.models import Chunk, PlaybackSession, PlaybackState, ProgressRecord, Voice


def test_chunk_is_frozen():
    """Chunks are immutable once segmented."""
    chunk = Chunk(index=0, text="Hello.")
    with pytest.raises(dataclasses.FrozenInstanceError):
        chunk.text = "Changed."


def test_voice_equality():
    """Voices compare by value."""
    assert Voice("alloy", "Alloy") == Voice(id="alloy", display_name="Alloy")


def test_session_defaults():
    """A new session is idle at chunk 0 with an empty cache."""
    session = PlaybackSession(chunks=[Chunk(0, "a")])
    assert session.state is PlaybackState.IDLE
    assert session.epoch == 0
    assert session.generation == 0
    assert session.cache == {}
    assert session.error is None
    assert session.pending_advance is False
    assert session.pause_requested is False


def test_session_cache_not_shared():
    """Each session gets its own cache dict."""
    a = PlaybackSession(chunks=[])
    b = PlaybackSession(chunks=[])
    a.cache[0] = b"x"
    assert b.cache == {}


def test_session_current_chunk():
    """current_chunk and is_last_chunk follow current_index."""
    chunks = [Chunk(0, "a"), Chunk(1, "b")]
    session = PlaybackSession(chunks=chunks)
    assert session.current_chunk == chunks[0]
    assert not session.is_last_chunk
    session.current_index = 1
    assert session.is_last_chunk
    session.current_index = 2
    assert session.current_chunk is None


def test_progress_record_defaults():
    """A record starts with nothing completed."""
    record = ProgressRecord(book_id="book")
    assert record.chapter_id is None
    assert record.chunk_index == 0
    assert record.completed_chapter_ids == set()


def test_error_hierarchy():
    """Domain errors share one base class."""
    for cls in (SegmentationError, SynthesisError, DeviceError, StaleOperation):
        assert issubclass(cls, NarratorError)


def test_stale_operation_carries_epochs():
    """StaleOperation records both epochs."""
    err = StaleOperation(captured=3, current=5)
    assert err.captured == 3
    assert err.current == 5


def test_constants_exist():
    """All module-level constants are defined."""
    expected = [
        "IDEAL_CHUNK_LENGTH",
        "MAX_CHUNK_LENGTH",
        "UNSPEAKABLE_PAUSE_MS",
        "PRELOAD_AHEAD",
        "MIN_AUDIO_BYTES",
        "DEFAULT_ENDPOINT",
        "DEFAULT_VOICE",
        "DEFAULT_MODEL",
        "SPEECH_PATH",
        "VOICE_LIST_PATHS",
        "DEFAULT_VOICES",
        "VERSION",
    ]
    for name in expected:
        assert hasattr(constants, name), f"Missing constant: {name}"


def test_chunk_length_defaults():
    """Default chunk lengths are consistent."""
    assert 0 < constants.IDEAL_CHUNK_LENGTH <= constants.MAX_CHUNK_LENGTH
