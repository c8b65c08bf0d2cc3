"""Shared fixtures for narrator tests."""

import asyncio

import pytest

from narrator.config import PlaybackSettings
from narrator.device import Device
from narrator.errors import DeviceError, SynthesisError
from narrator.models import Chunk
from narrator.tts import SpeechClient


class FakeSpeechClient(SpeechClient):
    """Records requests; texts can be gated (held until released) or failed."""

    def __init__(self):
        self.requests = []
        self.fail_on = set()
        self._gates = {}

    @property
    def calls(self):
        return [text for text, _, _, _ in self.requests]

    def hold(self, text):
        self._gates[text] = asyncio.Event()

    def release(self, text):
        self._gates[text].set()

    async def synthesize(self, text, voice, speed, model):
        self.requests.append((text, voice, speed, model))
        gate = self._gates.get(text)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if text in self.fail_on:
            raise SynthesisError(f"synthesis failed: {text}")
        return f"audio:{text}".encode()


class FakeDevice(Device):
    """Records operations. ``finish()`` fires the end-of-playback event.

    With ``auto_finish`` every play() schedules the end event on the loop.
    """

    def __init__(self, auto_finish=False):
        self.ops = []
        self.source = None
        self.callback = None
        self.fail_play = False
        self.auto_finish = auto_finish

    @property
    def played(self):
        return [arg for op, arg in self.ops if op == "play"]

    def assign_source(self, audio):
        self.ops.append(("assign", audio))
        self.source = audio

    def play(self):
        if self.fail_play:
            raise DeviceError("playback rejected")
        self.ops.append(("play", self.source))
        if self.auto_finish:
            asyncio.get_running_loop().call_soon(self.finish)

    def pause(self):
        self.ops.append(("pause", None))

    def stop(self):
        self.ops.append(("stop", None))
        self.source = None

    def on_ended(self, callback):
        self.callback = callback

    def finish(self):
        if self.callback is not None:
            self.callback()


@pytest.fixture
def fake_client():
    return FakeSpeechClient()


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def auto_device():
    return FakeDevice(auto_finish=True)


@pytest.fixture
def settings():
    return PlaybackSettings(pause_ms=10)


@pytest.fixture
def sample_chunks():
    """Pre-built chunks for orchestrator tests."""
    return [
        Chunk(index=0, text="It was a dark and stormy night."),
        Chunk(index=1, text="The rain fell in torrents."),
        Chunk(index=2, text="Except at occasional intervals."),
    ]


@pytest.fixture
def chapter_file(tmp_path):
    """A chapter file inside a book directory."""
    book_dir = tmp_path / "My Book"
    book_dir.mkdir()
    path = book_dir / "Chapter 1.txt"
    path.write_text("It was dark.\n\n——\n\nThe rain fell.\n", encoding="utf-8")
    return path
