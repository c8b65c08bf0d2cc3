"""Speech synthesis clients: OpenAI-compatible HTTP endpoint and edge-tts."""

import io
import logging
from abc import ABC, abstractmethod

import edge_tts
import httpx
from pydub import AudioSegment

from narrator.config import PlaybackSettings
from narrator.constants import (
    MIN_AUDIO_BYTES,
    SPEECH_PATH,
    SYNTHESIS_TIMEOUT_SECONDS,
    DEFAULT_RESPONSE_FORMAT,
)
from narrator.errors import SynthesisError

logger = logging.getLogger(__name__)


def check_audio_payload(payload: bytes, content_type: str = "", fmt: str = DEFAULT_RESPONSE_FORMAT,
                        decode: bool = False) -> None:
    """Reject payloads that are clearly not audio.

    Too small, or a JSON/HTML/text body served with a success status, counts
    as failure. With ``decode``, the payload must also decode with pydub.
    """
    if len(payload) < MIN_AUDIO_BYTES:
        raise SynthesisError(f"Audio payload too small ({len(payload)} bytes)")
    content_type = content_type.lower()
    if content_type.startswith(("application/json", "text/")):
        raise SynthesisError(f"Expected audio, got {content_type.split(';')[0]}")
    if payload.lstrip()[:1] in (b"{", b"["):
        raise SynthesisError("Expected audio, got a JSON body")
    if payload.lstrip()[:1] == b"<":
        raise SynthesisError("Expected audio, got an HTML body")
    if decode:
        try:
            segment = AudioSegment.from_file(io.BytesIO(payload), format=fmt)
        except Exception as e:
            raise SynthesisError(f"Audio payload does not decode as {fmt}: {e}") from e
        if len(segment) == 0:
            raise SynthesisError("Audio payload decodes to 0 ms")


class SpeechClient(ABC):
    """Turns text into an audio resource (encoded bytes)."""

    @abstractmethod
    async def synthesize(self, text: str, voice: str, speed: float, model: str) -> bytes:
        ...


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    fallback = f"API error ({response.status_code})"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if isinstance(body.get("detail"), str):
        return body["detail"]
    return fallback


class OpenAISpeechClient(SpeechClient):
    """Client for an OpenAI-compatible ``/v1/audio/speech`` endpoint.

    ``transport`` is passed through to httpx (tests use MockTransport).
    """

    def __init__(self, endpoint: str, api_key: str = "", response_format: str = DEFAULT_RESPONSE_FORMAT,
                 timeout: float = SYNTHESIS_TIMEOUT_SECONDS, verify_decode: bool = False,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = endpoint.strip().rstrip("/")
        self.api_key = api_key
        self.response_format = response_format
        self.timeout = timeout
        self.verify_decode = verify_decode
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{SPEECH_PATH}"

    async def synthesize(self, text: str, voice: str, speed: float, model: str) -> bytes:
        payload = {
            "model": model,
            "input": text,
            "voice": voice,
            "speed": speed,
            "response_format": self.response_format,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        logger.debug("Requesting %s (%d chars, voice=%s)", self.url, len(text), voice)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise SynthesisError(f"TTS request timed out: {self.url}") from e
        except (httpx.TransportError, httpx.InvalidURL) as e:
            raise SynthesisError(
                f"Cannot reach TTS server at {self.base_url}; check the endpoint and that the service is running"
            ) from e
        except httpx.HTTPError as e:
            # Decoding errors, redirect loops and the like
            raise SynthesisError(f"TTS request failed: {e}") from e

        if response.status_code in (401, 403):
            raise SynthesisError(f"Authentication failed ({response.status_code}): {_error_message(response)}")
        if not response.is_success:
            raise SynthesisError(_error_message(response))

        audio = response.content
        check_audio_payload(
            audio,
            content_type=response.headers.get("content-type", ""),
            fmt=self.response_format,
            decode=self.verify_decode,
        )
        return audio


def speed_to_rate(speed: float) -> str:
    """Map a speed multiplier to edge-tts' relative rate: 1.2 → "+20%"."""
    return f"{round((speed - 1.0) * 100):+d}%"


class EdgeSpeechClient(SpeechClient):
    """edge-tts backend. ``model`` is ignored; edge voices carry their own."""

    def __init__(self, verify_decode: bool = False):
        self.verify_decode = verify_decode

    async def synthesize(self, text: str, voice: str, speed: float, model: str = "") -> bytes:
        communicate = edge_tts.Communicate(text, voice, rate=speed_to_rate(speed))
        audio = bytearray()
        try:
            async for message in communicate.stream():
                if message["type"] == "audio":
                    audio.extend(message["data"])
        except Exception as e:
            raise SynthesisError(f"edge-tts failed for voice {voice}: {e}") from e

        # 0 bytes happens on throttling; treat like any other failure
        check_audio_payload(bytes(audio), fmt="mp3", decode=self.verify_decode)
        return bytes(audio)


def make_client(settings: PlaybackSettings) -> SpeechClient:
    """Build the synthesis client selected by ``settings.backend``."""
    if settings.backend == "edge":
        return EdgeSpeechClient(verify_decode=settings.verify_decode)
    if settings.backend == "openai":
        return OpenAISpeechClient(
            settings.endpoint,
            api_key=settings.api_key,
            response_format=settings.response_format,
            verify_decode=settings.verify_decode,
        )
    raise ValueError(f"Unknown TTS backend: {settings.backend}")
