"""
Service configuration, read once from the environment.
"""
import os
import logging

logger = logging.getLogger("config")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None or not value > 0:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    return value


def _csv_env(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


def _indices_env(name: str, default: str) -> tuple[int, ...]:
    """Comma-separated uint64 party indices; any bad entry falls back to the default."""
    items = _csv_env(name, default)
    try:
        indices = tuple(int(item) for item in items)
    except ValueError:
        indices = ()
    if not indices or any(not 0 <= i <= 2**64 - 1 for i in indices):
        logger.warning(f"Ignoring invalid {name}={os.getenv(name)!r}, using {default}")
        return tuple(int(item) for item in default.split(","))
    return indices


# SECURITY: No default API_SECRET - the local backend falls back to a
# random per-process secret, so receipts never verify across restarts.
API_SECRET = os.getenv("API_SECRET")

# Remote verifiable-computation backend; local backend when unset
BACKEND_URL = os.getenv("POF_BACKEND_URL")
BACKEND_TIMEOUT = _float_env("POF_BACKEND_TIMEOUT", 300.0)

# Party indices whose derived keys form the allow-list
KNOWN_PARTIES = _indices_env("POF_KNOWN_PARTIES", "0,1")

# Proof job worker pool
WORKER_COUNT = max(1, _int_env("POF_WORKERS", 2))
JOB_QUEUE_SIZE = max(0, _int_env("POF_JOB_QUEUE_SIZE", 256))

CORS_ORIGINS = _csv_env("POF_CORS_ORIGINS", "*")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# uvicorn bind address for `pof-server`
HOST = os.getenv("POF_HOST", "127.0.0.1")
PORT = _int_env("POF_PORT", 3030)
