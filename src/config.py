import os

# Cloud Functions callable endpoint, e.g. the local emulator
FUNCTIONS_BASE_URL = os.getenv("FUNCTIONS_BASE_URL", "http://127.0.0.1:5001/crowd-app/us-central1")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY = float(os.getenv("RETRY_DELAY", "2"))

# Local cache of fetched events and signals
DB_URL = os.getenv("DB_URL", "sqlite:///./crowd_cache.db")

LOG_DIR = os.getenv("LOG_DIR", "logs")

DEFAULT_EVENT_RADIUS_KM = 10.0
DEFAULT_SIGNAL_RADIUS_KM = 5.0

# Geohash length used for real-time listener prefixes (~5km cells)
LISTENER_PRECISION = 5
# Geohash length stored on records that arrive without one (~1.2km cells)
STORAGE_PRECISION = 6
