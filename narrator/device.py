"""Playback device contract and a pygame.mixer implementation."""

import asyncio
import io
import logging
import os
from abc import ABC, abstractmethod
from typing import Callable

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame

from narrator.constants import DEVICE_POLL_SECONDS, DEFAULT_RESPONSE_FORMAT
from narrator.errors import DeviceError

logger = logging.getLogger(__name__)


class Device(ABC):
    """Minimal audio-rendering capability the orchestrator drives.

    Every operation is synchronous and must be safe to call in any state.
    """

    @abstractmethod
    def assign_source(self, audio: bytes) -> None:
        ...

    @abstractmethod
    def play(self) -> None:
        """Start the assigned source, or continue it after pause()."""

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop and release the current source."""

    @abstractmethod
    def on_ended(self, callback: Callable[[], None] | None) -> None:
        """Subscribe to end-of-playback. Replaces any previous subscriber."""


class PygameDevice(Device):
    """Device backed by ``pygame.mixer.music``.

    pygame has no end-of-track callback without a display event queue, so a
    watcher task polls ``get_busy()`` on the running asyncio loop.
    """

    def __init__(self, fmt: str = DEFAULT_RESPONSE_FORMAT, poll_seconds: float = DEVICE_POLL_SECONDS):
        self.fmt = fmt
        self.poll_seconds = poll_seconds
        self._callback = None
        self._loaded = False
        self._playing = False
        self._paused = False
        self._watcher = None

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init():
            return
        try:
            pygame.mixer.init()
        except pygame.error as e:
            raise DeviceError(f"Audio output unavailable: {e}") from e

    def assign_source(self, audio: bytes) -> None:
        self._ensure_mixer()
        try:
            pygame.mixer.music.stop()
            pygame.mixer.music.load(io.BytesIO(audio), self.fmt)
        except pygame.error as e:
            raise DeviceError(f"Cannot load audio: {e}") from e
        self._loaded = True
        self._playing = False
        self._paused = False

    def play(self) -> None:
        if not self._loaded:
            return
        try:
            if self._paused:
                pygame.mixer.music.unpause()
            else:
                pygame.mixer.music.play()
        except pygame.error as e:
            raise DeviceError(f"Playback rejected: {e}") from e
        self._playing = True
        self._paused = False
        self._start_watcher()

    def pause(self) -> None:
        if self._playing and not self._paused:
            pygame.mixer.music.pause()
            self._paused = True

    def stop(self) -> None:
        if pygame.mixer.get_init():
            pygame.mixer.music.stop()
            pygame.mixer.music.unload()
        self._loaded = False
        self._playing = False
        self._paused = False
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None

    def on_ended(self, callback: Callable[[], None] | None) -> None:
        self._callback = callback

    def _start_watcher(self) -> None:
        if self._watcher is None or self._watcher.done():
            self._watcher = asyncio.get_running_loop().create_task(self._watch())

    async def _watch(self) -> None:
        while self._loaded:
            await asyncio.sleep(self.poll_seconds)
            if self._playing and not self._paused and not pygame.mixer.music.get_busy():
                self._playing = False
                logger.debug("Playback finished")
                if self._callback is not None:
                    self._callback()
