import os

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Built frontend, served at / when present
CLIENT_BUILD_DIR = os.getenv("CLIENT_BUILD_DIR", os.path.join(os.getcwd(), "client", "build"))

# Rooms live for the process lifetime unless an idle timeout is set (seconds, 0 = never)
ROOM_IDLE_TIMEOUT = float(os.getenv("ROOM_IDLE_TIMEOUT", "0"))
ROOM_SWEEP_INTERVAL = float(os.getenv("ROOM_SWEEP_INTERVAL", "60"))

# Search provider
PROXY_URL = os.getenv("PROXY_URL")
SEARCH_MAX_RESULTS = int(os.getenv("SEARCH_MAX_RESULTS", "10"))
SEARCH_CACHE_TTL = float(os.getenv("SEARCH_CACHE_TTL", "600"))
SEARCH_CACHE_SIZE = int(os.getenv("SEARCH_CACHE_SIZE", "1000"))
SEARCH_RATE_LIMIT = int(os.getenv("SEARCH_RATE_LIMIT", "50"))
SEARCH_RATE_WINDOW = float(os.getenv("SEARCH_RATE_WINDOW", "60"))
SEARCH_RATE_COOLDOWN = float(os.getenv("SEARCH_RATE_COOLDOWN", "300"))
SEARCH_RETRIES = int(os.getenv("SEARCH_RETRIES", "3"))
SEARCH_RETRY_DELAY = float(os.getenv("SEARCH_RETRY_DELAY", "1.0"))
