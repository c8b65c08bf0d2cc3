"""Playback settings: defaults, JSON persistence and `set` validation."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace

from narrator.constants import (
    DEFAULT_BACKEND,
    DEFAULT_ENDPOINT,
    DEFAULT_API_KEY,
    DEFAULT_VOICE,
    DEFAULT_MODEL,
    DEFAULT_SPEED,
    DEFAULT_RESPONSE_FORMAT,
    SPEED_RANGE,
    IDEAL_CHUNK_LENGTH,
    MAX_CHUNK_LENGTH,
    UNSPEAKABLE_PAUSE_MS,
)

logger = logging.getLogger(__name__)

BACKENDS = ("openai", "edge")


@dataclass
class PlaybackSettings:
    backend: str = DEFAULT_BACKEND
    endpoint: str = DEFAULT_ENDPOINT
    api_key: str = DEFAULT_API_KEY
    voice: str = DEFAULT_VOICE
    model: str = DEFAULT_MODEL
    speed: float = DEFAULT_SPEED
    response_format: str = DEFAULT_RESPONSE_FORMAT
    ideal_length: int = IDEAL_CHUNK_LENGTH
    max_length: int = MAX_CHUNK_LENGTH
    pause_ms: int = UNSPEAKABLE_PAUSE_MS
    verify_decode: bool = False

    @property
    def base_url(self) -> str:
        """Endpoint without surrounding whitespace or trailing slashes."""
        return self.endpoint.strip().rstrip("/")


def load_settings(path: str) -> PlaybackSettings:
    """Read settings JSON over the defaults.

    Missing file → defaults. Unknown keys are ignored; a malformed file logs a
    warning and yields defaults.
    """
    if not os.path.exists(path):
        return PlaybackSettings()
    try:
        with open(path) as f:
            saved = json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed settings file: %s — using defaults", path)
        return PlaybackSettings()
    if not isinstance(saved, dict):
        logger.warning("Settings file is not an object: %s — using defaults", path)
        return PlaybackSettings()
    known = {f.name for f in fields(PlaybackSettings)}
    return replace(PlaybackSettings(), **{k: v for k, v in saved.items() if k in known})


def save_settings(path: str, settings: PlaybackSettings) -> str:
    """Write settings JSON, creating the parent directory. Returns the path."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as f:
        json.dump(asdict(settings), f, indent=2)
    return path


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise ValueError(f"Expected on/off, got: {value}")


def _parse_positive_int(value: str, label: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise ValueError(f"Invalid {label}: {value}")
    if number < 1:
        raise ValueError(f"{label} must be positive: {value}")
    return number


def update_setting(settings: PlaybackSettings, key: str, value: str) -> PlaybackSettings:
    """Return a copy of settings with one CLI-style key updated.

    Raises ValueError with a user-facing message on a bad key or value.
    """
    if key == "voice":
        return replace(settings, voice=value)
    if key == "model":
        return replace(settings, model=value)
    if key == "endpoint":
        if not value.strip().lower().startswith(("http://", "https://")):
            raise ValueError(f"Endpoint must start with http:// or https://: {value}")
        return replace(settings, endpoint=value.strip())
    if key == "api-key":
        return replace(settings, api_key=value)
    if key == "backend":
        if value not in BACKENDS:
            raise ValueError(f"Backend must be one of: {', '.join(BACKENDS)}")
        return replace(settings, backend=value)
    if key == "speed":
        try:
            speed = float(value)
        except ValueError:
            raise ValueError(f"Invalid speed: {value}")
        low, high = SPEED_RANGE
        if not low <= speed <= high:
            raise ValueError(f"Speed must be between {low} and {high}: {value}")
        return replace(settings, speed=speed)
    if key == "ideal-length":
        ideal = _parse_positive_int(value, "ideal length")
        if ideal > settings.max_length:
            raise ValueError(f"Ideal length exceeds max length ({settings.max_length})")
        return replace(settings, ideal_length=ideal)
    if key == "max-length":
        max_length = _parse_positive_int(value, "max length")
        if max_length < settings.ideal_length:
            raise ValueError(f"Max length is below ideal length ({settings.ideal_length})")
        return replace(settings, max_length=max_length)
    if key == "pause-ms":
        return replace(settings, pause_ms=_parse_positive_int(value, "pause"))
    if key == "verify-decode":
        return replace(settings, verify_decode=_parse_bool(value))
    raise ValueError(f"Invalid setting key: {key}")


SETTING_KEYS = (
    "voice", "model", "endpoint", "api-key", "backend", "speed",
    "ideal-length", "max-length", "pause-ms", "verify-decode",
)
