"""Voice catalog: best-effort listing with a built-in fallback."""

import logging

import edge_tts
import httpx

from narrator.config import PlaybackSettings
from narrator.constants import DEFAULT_VOICES, VOICE_LIST_PATHS, VOICE_LIST_TIMEOUT_SECONDS
from narrator.models import Voice

logger = logging.getLogger(__name__)


def default_voices() -> list[Voice]:
    """Built-in voice list (avoids depending on the server listing voices)."""
    return [Voice(id=voice_id, display_name=name) for voice_id, name in DEFAULT_VOICES]


def _parse_voice(item) -> Voice | None:
    """Accept a bare id string or an object with a recognizable id field."""
    if isinstance(item, str):
        return Voice(id=item, display_name=item) if item else None
    if not isinstance(item, dict):
        return None
    voice_id = item.get("id") or item.get("voice_id") or item.get("ShortName") or item.get("name")
    if not voice_id:
        return None
    display = item.get("name") or item.get("FriendlyName") or item.get("display_name") or voice_id
    return Voice(id=str(voice_id), display_name=str(display))


def parse_voice_listing(data) -> list[Voice]:
    """Extract voices from a bare list or a ``{"data": [...]}`` envelope."""
    if isinstance(data, dict):
        data = data.get("data") if isinstance(data.get("data"), list) else data.get("voices")
    if not isinstance(data, list):
        return []
    voices = []
    for item in data:
        voice = _parse_voice(item)
        if voice is not None:
            voices.append(voice)
    return voices


async def _list_http_voices(settings: PlaybackSettings, transport: httpx.AsyncBaseTransport | None) -> list[Voice]:
    headers = {"Authorization": f"Bearer {settings.api_key}"}
    async with httpx.AsyncClient(timeout=VOICE_LIST_TIMEOUT_SECONDS, transport=transport) as client:
        for path in VOICE_LIST_PATHS:
            url = f"{settings.base_url}{path}"
            try:
                response = await client.get(url, headers=headers)
                if not response.is_success:
                    logger.debug("Voice listing %s returned %d", url, response.status_code)
                    continue
                voices = parse_voice_listing(response.json())
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                logger.debug("Voice listing %s failed: %s", url, e)
                continue
            if voices:
                return voices
    return []


async def _list_edge_voices() -> list[Voice]:
    try:
        listing = await edge_tts.list_voices()
    except Exception as e:
        logger.debug("edge-tts voice listing failed: %s", e)
        return []
    return parse_voice_listing(listing)


async def list_voices(settings: PlaybackSettings, transport: httpx.AsyncBaseTransport | None = None) -> list[Voice]:
    """List voices for the configured backend.

    Candidate endpoints are tried in a fixed order; the first non-empty
    result wins. Total failure falls back silently to the built-in list.
    """
    if settings.backend == "edge":
        voices = await _list_edge_voices()
    else:
        voices = await _list_http_voices(settings, transport)
    if not voices:
        logger.info("No voices listed by %s backend — using built-in defaults", settings.backend)
        return default_voices()
    return voices
