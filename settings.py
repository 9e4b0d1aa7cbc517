"""
Clip worker configuration.
"""
import os
from pathlib import Path

# Service settings
SERVICE_NAME = "clipforge-worker"
SERVICE_VERSION = "1.0.0"
SERVICE_PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",")
    if origin.strip()
]

# Paths
BASE_DIR = Path(__file__).parent
TEMP_DIR = Path(os.getenv("TEMP_DIR", BASE_DIR / "temp"))
PRESETS_PATH = Path(os.getenv("PRESETS_PATH", TEMP_DIR / "subtitle_presets.json"))

# Editor defaults
DEFAULT_CROP_X = float(os.getenv("DEFAULT_CROP_X", 0.5))
DEFAULT_PIXELS_PER_SECOND = float(os.getenv("DEFAULT_PIXELS_PER_SECOND", 60))

# Render output (9:16)
OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920

# FFmpeg settings
FFMPEG_PATH = os.getenv("FFMPEG_PATH", "ffmpeg")

# Editing sessions
SESSION_IDLE_TIMEOUT = int(os.getenv("SESSION_IDLE_TIMEOUT", 3600))  # seconds
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", 200))
