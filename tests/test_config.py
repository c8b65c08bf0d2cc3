"""Tests for config module."""

import json

import pytest

from narrator.config import PlaybackSettings, load_settings, save_settings, update_setting
from narrator.constants import DEFAULT_ENDPOINT, DEFAULT_VOICE, UNSPEAKABLE_PAUSE_MS


# --- Persistence ---

def test_load_missing_file_gives_defaults(tmp_path):
    """No settings file means defaults."""
    settings = load_settings(str(tmp_path / "settings.json"))
    assert settings == PlaybackSettings()
    assert settings.endpoint == DEFAULT_ENDPOINT
    assert settings.voice == DEFAULT_VOICE
    assert settings.pause_ms == UNSPEAKABLE_PAUSE_MS


def test_save_and_load(tmp_path):
    """Saved settings load back unchanged."""
    path = str(tmp_path / "nested" / "settings.json")
    original = PlaybackSettings(voice="nova", speed=1.5, backend="edge", verify_decode=True)
    assert save_settings(path, original) == path
    assert load_settings(path) == original


def test_load_merges_over_defaults(tmp_path):
    """Partial files fill the rest from defaults; unknown keys are ignored."""
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"voice": "echo", "colour": "blue"}))
    settings = load_settings(str(path))
    assert settings.voice == "echo"
    assert settings.model == PlaybackSettings().model


def test_load_malformed_file(tmp_path, caplog):
    """A malformed file logs a warning and yields defaults."""
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    with caplog.at_level("WARNING"):
        settings = load_settings(str(path))
    assert settings == PlaybackSettings()
    assert "Malformed settings file" in caplog.text


def test_load_non_object(tmp_path):
    """A JSON list is not a settings object."""
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]")
    assert load_settings(str(path)) == PlaybackSettings()


def test_base_url_strips_slashes():
    """base_url drops whitespace and trailing slashes."""
    assert PlaybackSettings(endpoint=" http://host:8880/ ").base_url == "http://host:8880"


# --- update_setting ---

@pytest.mark.parametrize("key,value,field,expected", [
    ("voice", "onyx", "voice", "onyx"),
    ("model", "kokoro", "model", "kokoro"),
    ("endpoint", " https://api.example ", "endpoint", "https://api.example"),
    ("api-key", "sk-1", "api_key", "sk-1"),
    ("backend", "edge", "backend", "edge"),
    ("speed", "1.75", "speed", 1.75),
    ("ideal-length", "200", "ideal_length", 200),
    ("max-length", "4000", "max_length", 4000),
    ("pause-ms", "1200", "pause_ms", 1200),
    ("verify-decode", "on", "verify_decode", True),
    ("verify-decode", "off", "verify_decode", False),
])
def test_update_setting(key, value, field, expected):
    """Each key updates its field."""
    updated = update_setting(PlaybackSettings(), key, value)
    assert getattr(updated, field) == expected


def test_update_setting_returns_copy():
    """The input settings are left untouched."""
    settings = PlaybackSettings()
    update_setting(settings, "voice", "onyx")
    assert settings.voice == DEFAULT_VOICE


@pytest.mark.parametrize("key,value,message", [
    ("colour", "blue", "Invalid setting key"),
    ("endpoint", "ftp://host", "http:// or https://"),
    ("backend", "festival", "Backend must be one of"),
    ("speed", "fast", "Invalid speed"),
    ("speed", "9", "between"),
    ("ideal-length", "0", "must be positive"),
    ("ideal-length", "abc", "Invalid ideal length"),
    ("ideal-length", "5000", "exceeds max length"),
    ("max-length", "50", "below ideal length"),
    ("pause-ms", "-1", "must be positive"),
    ("verify-decode", "maybe", "Expected on/off"),
])
def test_update_setting_rejects(key, value, message):
    """Bad keys and values raise ValueError with a readable message."""
    with pytest.raises(ValueError, match=message):
        update_setting(PlaybackSettings(), key, value)
