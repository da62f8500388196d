import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Admin endpoints are disabled while the token is empty
    ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Storage (defaults to in-memory)
    REDIS_URL = os.environ.get("REDIS_URL", "")
    DATABASE_URL = os.environ.get("DATABASE_URL", "")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    # Expiry
    ROOM_TTL_SEC = int(os.environ.get("ROOM_TTL_SEC", str(4 * 3600)))
    VOTE_TTL_SEC = int(os.environ.get("VOTE_TTL_SEC", "300"))
    SWEEP_INTERVAL_SEC = int(os.environ.get("SWEEP_INTERVAL_SEC", "60"))

    # Game
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    ROOM_CODE_ATTEMPTS = int(os.environ.get("ROOM_CODE_ATTEMPTS", "10"))
    DEFAULT_AGE_RATING = os.environ.get("DEFAULT_AGE_RATING", "ALL")
