"""Playback orchestration: session state machine, preloading and cancellation.

One session is live at a time. Every asynchronous step captures the session
epoch when it is dispatched and only touches session state if the epoch is
still current; anything else is a superseded operation and is dropped
silently. Preloads only ever add cache entries and are scoped to the cache
generation instead, so an automatic advance can still consume them.
"""

import asyncio
import logging
from typing import Callable, Iterable

from narrator.config import PlaybackSettings
from narrator.constants import PRELOAD_AHEAD
from narrator.device import Device
from narrator.errors import DeviceError, StaleOperation, SynthesisError
from narrator.models import Chunk, PlaybackSession, PlaybackState
from narrator.segmenter import is_unspeakable
from narrator.tts import SpeechClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str | None, int, bool], None]


class Orchestrator:
    """Drives a Device through a chapter's chunks.

    Transport methods are synchronous: they update the session, schedule
    work on the running event loop and return the session. Call them from
    inside a running loop.
    """

    def __init__(self, client: SpeechClient, device: Device, settings: PlaybackSettings,
                 reporter: ProgressCallback | None = None,
                 unspeakable: Callable[[str], bool] = is_unspeakable,
                 pause_seconds: float | None = None,
                 preload_ahead: int = PRELOAD_AHEAD):
        self.client = client
        self.device = device
        self.settings = settings
        self.reporter = reporter
        self.unspeakable = unspeakable
        self.pause_seconds = settings.pause_ms / 1000 if pause_seconds is None else pause_seconds
        self.preload_ahead = preload_ahead
        self.session = PlaybackSession(chunks=[])
        self._tasks: set[asyncio.Task] = set()
        self._preloading: set[tuple[int, int]] = set()  # (generation, index)
        self._state_listeners: list[Callable[[PlaybackState], None]] = []
        self._error_listeners: list[Callable[[str], None]] = []

    # --- listeners -------------------------------------------------------

    def on_state_change(self, callback: Callable[[PlaybackState], None]) -> None:
        self._state_listeners.append(callback)

    def on_error(self, callback: Callable[[str], None]) -> None:
        self._error_listeners.append(callback)

    def _set_state(self, session: PlaybackSession, state: PlaybackState) -> None:
        if session.state is state:
            return
        logger.debug("State %s → %s", session.state.value, state.value)
        session.state = state
        for callback in self._state_listeners:
            callback(state)

    # --- transport -------------------------------------------------------

    def start(self, chunks: Iterable[Chunk], resume_index: int = 0,
              book_id: str | None = None, chapter_id: str | None = None) -> PlaybackSession:
        """Replace any live session with a fresh one and play from resume_index."""
        previous = self.stop()
        session = PlaybackSession(
            chunks=list(chunks),
            book_id=book_id,
            chapter_id=chapter_id,
            current_index=resume_index,
            epoch=previous.epoch,
            generation=previous.generation + 1,
        )
        self.session = session
        self.device.on_ended(lambda: self._handle_ended(session))
        logger.info("Session %s/%s: %d chunks, starting at %d",
                    book_id, chapter_id, len(session.chunks), resume_index)
        return self.play_chunk(resume_index)

    def play_chunk(self, index: int) -> PlaybackSession:
        session = self.session
        if not 0 <= index < len(session.chunks):
            logger.info("Chunk %d is past the chapter (%d chunks) — ending", index, len(session.chunks))
            self._release(session, PlaybackState.ENDED)
            return session

        session.epoch += 1
        session.current_index = index
        session.error = None
        session.pending_advance = False
        session.pause_requested = False
        self.device.pause()
        self._set_state(session, PlaybackState.LOADING)
        self._dispatch(self._load(session, index, session.epoch))
        return session

    def seek(self, index: int) -> PlaybackSession:
        return self.play_chunk(index)

    def advance(self) -> PlaybackSession:
        session = self.session
        next_index = session.current_index + 1
        if next_index >= len(session.chunks):
            logger.info("End of chapter %s", session.chapter_id)
            self._release(session, PlaybackState.ENDED)
            return session
        return self.play_chunk(next_index)

    def pause(self) -> PlaybackSession:
        session = self.session
        if session.state is PlaybackState.PLAYING:
            self.device.pause()
            self._set_state(session, PlaybackState.PAUSED)
        elif session.state is PlaybackState.LOADING:
            # Honoured once the chunk is ready
            session.pause_requested = True
        return session

    def resume(self) -> PlaybackSession:
        session = self.session
        if session.state is PlaybackState.LOADING:
            session.pause_requested = False
            return session
        if session.state is not PlaybackState.PAUSED:
            return session
        if session.pending_advance:
            # Silent pause ran out while paused
            session.pending_advance = False
            self._set_state(session, PlaybackState.PLAYING)
            return self.advance()
        if not self.unspeakable(session.chunks[session.current_index].text):
            try:
                self.device.play()
            except DeviceError as e:
                self._fail(session, str(e))
                return session
        self._set_state(session, PlaybackState.PLAYING)
        return session

    def stop(self) -> PlaybackSession:
        session = self.session
        self._release(session, PlaybackState.IDLE)
        return session

    def apply_settings(self, settings: PlaybackSettings) -> PlaybackSession:
        """Switch voice/speed/model; audio cached under the old settings is dropped."""
        session = self.session
        self.settings = settings
        session.generation += 1
        session.cache.clear()
        return session

    async def join(self) -> None:
        """Wait for every dispatched load and preload, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # --- internals -------------------------------------------------------

    def _dispatch(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _release(self, session: PlaybackSession, state: PlaybackState) -> None:
        session.epoch += 1
        session.generation += 1
        session.pending_advance = False
        session.pause_requested = False
        self.device.stop()
        session.cache.clear()
        self._set_state(session, state)

    def _check(self, session: PlaybackSession, epoch: int) -> None:
        if session is not self.session or session.epoch != epoch:
            raise StaleOperation(epoch, session.epoch)

    def _store(self, session: PlaybackSession, generation: int, index: int, audio: bytes) -> bytes:
        """Add to the cache unless it was dropped since dispatch. First write wins."""
        if session is self.session and session.generation == generation:
            return session.cache.setdefault(index, audio)
        return audio

    def _report(self, session: PlaybackSession) -> None:
        if self.reporter is not None:
            self.reporter(session.chapter_id, session.current_index, session.is_last_chunk)

    def _fail(self, session: PlaybackSession, message: str) -> None:
        logger.error("Chunk %d failed: %s", session.current_index, message)
        session.error = message
        self._set_state(session, PlaybackState.ERROR)
        for callback in self._error_listeners:
            callback(message)

    def _handle_ended(self, session: PlaybackSession) -> None:
        if session is self.session and session.state is PlaybackState.PLAYING:
            self.advance()

    async def _load(self, session: PlaybackSession, index: int, epoch: int) -> None:
        chunk = session.chunks[index]
        try:
            self._check(session, epoch)
            if self.unspeakable(chunk.text):
                await self._play_silence(session, chunk, epoch)
            else:
                await self._play_audio(session, chunk, epoch)
        except StaleOperation as e:
            logger.debug("Chunk %d: %s", index, e)

    async def _play_silence(self, session: PlaybackSession, chunk: Chunk, epoch: int) -> None:
        logger.debug("Chunk %d is unspeakable — pausing %.2fs", chunk.index, self.pause_seconds)
        self.device.stop()
        if session.pause_requested:
            session.pause_requested = False
            self._set_state(session, PlaybackState.PAUSED)
        else:
            self._set_state(session, PlaybackState.PLAYING)
        self._report(session)
        await asyncio.sleep(self.pause_seconds)
        self._check(session, epoch)
        if session.state is PlaybackState.PAUSED:
            session.pending_advance = True
            return
        self.advance()

    async def _play_audio(self, session: PlaybackSession, chunk: Chunk, epoch: int) -> None:
        settings = self.settings
        generation = session.generation
        audio = session.cache.get(chunk.index)
        if audio is None:
            try:
                audio = await self.client.synthesize(chunk.text, settings.voice, settings.speed, settings.model)
            except SynthesisError as e:
                self._check(session, epoch)
                self._fail(session, str(e))
                return
            self._check(session, epoch)
            audio = self._store(session, generation, chunk.index, audio)

        try:
            self.device.assign_source(audio)
            if not session.pause_requested:
                self.device.play()
        except DeviceError as e:
            self._check(session, epoch)
            self._fail(session, str(e))
            return
        self._check(session, epoch)
        if session.pause_requested:
            # Source stays assigned; resume() starts it
            session.pause_requested = False
            self._set_state(session, PlaybackState.PAUSED)
        else:
            self._set_state(session, PlaybackState.PLAYING)
        self._report(session)
        self._preload_after(session, chunk.index)

    def _preload_after(self, session: PlaybackSession, index: int) -> None:
        targets = []
        for chunk in session.chunks[index + 1:]:
            if len(targets) >= self.preload_ahead:
                break
            if not self.unspeakable(chunk.text):
                targets.append(chunk)
        for chunk in targets:
            key = (session.generation, chunk.index)
            if chunk.index in session.cache or key in self._preloading:
                continue
            self._preloading.add(key)
            self._dispatch(self._preload(session, chunk, session.generation))

    async def _preload(self, session: PlaybackSession, chunk: Chunk, generation: int) -> None:
        settings = self.settings
        try:
            audio = await self.client.synthesize(chunk.text, settings.voice, settings.speed, settings.model)
        except SynthesisError as e:
            logger.debug("Preload of chunk %d failed: %s", chunk.index, e)
            return
        finally:
            self._preloading.discard((generation, chunk.index))
        self._store(session, generation, chunk.index, audio)
