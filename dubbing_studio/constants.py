"""All magic numbers and configuration constants."""

MAX_SEGMENT_CHARS = 4500            # chars, under the provider's request ceiling
SAMPLE_RATE = 24000                 # Hz, provider's fixed PCM output rate
NUM_CHANNELS = 1                    # mono
BITS_PER_SAMPLE = 16                # signed little-endian
WAV_HEADER_SIZE = 44                # bytes
TTS_MODEL = "gemini-2.5-flash-preview-tts"
DETECTION_MODEL = "gemini-2.5-flash"
NARRATOR_KEY = "Narrator"                    # reserved character bucket
DEFAULT_MALE_VOICE = "Puck"
DEFAULT_FEMALE_VOICE = "Kore"
DEFAULT_NEUTRAL_VOICE = "Kore"
ADDED_CHARACTER_VOICE = "Kore"               # voice for manually added characters
MAX_SPEAKERS = 2                             # provider's multi-speaker limit
VOICE_PREVIEW_TEXT = "Hello, this is a sample of my voice."
CREDENTIALS_ENV_VAR = "DUBBING_API_KEYS"     # newline-delimited API keys
RECOVERABLE_ERROR_MARKERS = ("429", "RESOURCE_EXHAUSTED", "API key not valid")
OUTPUT_DIR = "output"
OUTPUT_BITRATE = "192k"                      # MP3 export bitrate
VERSION = "0.1.0"
