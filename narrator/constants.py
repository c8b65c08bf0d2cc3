"""All magic numbers and configuration constants."""

IDEAL_CHUNK_LENGTH = 100            # chars — target chunk length for long paragraphs
MAX_CHUNK_LENGTH = 3000             # chars — no chunk is ever longer than this
SENTENCE_WINDOW = (0.4, 1.4)        # × ideal — where a sentence mark may end a chunk
CLAUSE_WINDOW = (0.5, 1.5)          # × ideal — where a comma-class mark may end a chunk
UNSPEAKABLE_PAUSE_MS = 800          # ms of silence standing in for an unspeakable chunk
PRELOAD_AHEAD = 2                   # speakable chunks synthesized ahead of playback
MIN_AUDIO_BYTES = 256               # payloads smaller than this are not real audio
DEVICE_POLL_SECONDS = 0.1           # end-of-playback polling interval
DEFAULT_BACKEND = "openai"          # "openai" (HTTP endpoint) or "edge" (edge-tts)
DEFAULT_ENDPOINT = "http://localhost:8880"
DEFAULT_API_KEY = ""
DEFAULT_VOICE = "alloy"
DEFAULT_MODEL = "tts-1"
DEFAULT_SPEED = 1.0
SPEED_RANGE = (0.25, 4.0)
DEFAULT_RESPONSE_FORMAT = "mp3"
SPEECH_PATH = "/v1/audio/speech"
SYNTHESIS_TIMEOUT_SECONDS = 120.0   # transport timeout of one synthesis request
VOICE_LIST_TIMEOUT_SECONDS = 3.0    # per candidate endpoint
VOICE_LIST_PATHS = ("/v1/voices/all", "/v1/voices", "/v1/models")
DEFAULT_VOICES = (                  # fallback when no endpoint lists voices
    ("alloy", "Alloy"),
    ("echo", "Echo"),
    ("fable", "Fable"),
    ("onyx", "Onyx"),
    ("nova", "Nova"),
    ("shimmer", "Shimmer"),
)
EDGE_DEFAULT_VOICE = "en-US-AriaNeural"
DATA_DIR = "~/.narrator"
SETTINGS_FILE = "settings.json"
PROGRESS_FILE = "progress.json"
VERSION = "0.1.0"
