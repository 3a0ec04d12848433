import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


# Default connection string; the server refuses to start without it.
MONGODB_URI = os.getenv("MONGODB_URI")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 3000)

# ---- Client cache ----
MAX_CACHED_CLIENTS = max(1, _env_int("MAX_CACHED_CLIENTS", 50))
SERVER_SELECTION_TIMEOUT_MS = _env_int("SERVER_SELECTION_TIMEOUT_MS", 5000)

# Comma-separated list, "*" allows any origin
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def require_default_uri() -> str:
    """Return ``MONGODB_URI`` or raise if the environment does not set it."""
    if not MONGODB_URI:
        raise RuntimeError("Missing MONGODB_URI env var")
    return MONGODB_URI
