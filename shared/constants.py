"""
Shared constants used across the platform.
"""

# Audio formats
SUPPORTED_AUDIO_FORMATS = [
    ".mp3", ".wav", ".flac", ".ogg", ".m4a",
    ".aac", ".opus"
]

SUPPORTED_IMAGE_FORMATS = [".jpg", ".jpeg", ".png", ".webp", ".gif"]

# Object storage
DEFAULT_BUCKET = "beats-media"
AUDIO_PREFIX = "audio"
COVER_PREFIX = "covers"
PROFILE_PREFIX = "profile"
DEFAULT_PRESIGNED_URL_TTL = 3600  # seconds

# Audio analysis
ANALYSIS_SAMPLE_RATE = 44100  # Hz, mono

# Interactions
INTERACTIONS_STORAGE_KEY = "beat-interactions-storage"
MAX_REACTION_DELTA = 2 ** 31  # per request, absolute
MAX_REACTION_COUNT = 2 ** 53 - 1  # largest integer a JSON client reads exactly

# Profile defaults
DEFAULT_PSEUDO = "Beatmaker"
DEFAULT_TAGLINE = "Producer"

# Admin session
ADMIN_SESSION_KEY = "admin_session"
ADMIN_SESSION_DAYS = 7

# Configuration paths
DEFAULT_CONFIG_DIR = "~/.config/beatfolio"
DEFAULT_DATA_DIR = "~/.local/share/beatfolio"
CONFIG_FILENAME = "config.json"
CLIENT_STATE_FILENAME = "client_state.json"
DATABASE_FILENAME = "beatfolio.db"

# Network settings
DEFAULT_API_PORT = 5005
DEFAULT_API_URL = f"http://localhost:{DEFAULT_API_PORT}"
DEFAULT_NETWORK_TIMEOUT = 10  # seconds
