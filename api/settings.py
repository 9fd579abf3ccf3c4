"""Runtime settings read from the environment."""

import os

from game.controller import DEFAULT_CODE_ATTEMPTS

# Env var names
ENV_CORS_ORIGINS = "LUPUS_CORS_ORIGINS"
ENV_CODE_ATTEMPTS = "LUPUS_CODE_ATTEMPTS"
ENV_LOG_LEVEL = "LUPUS_LOG_LEVEL"


def get_cors_origins() -> list[str]:
    """Comma-separated origins; defaults to any origin."""
    raw = os.environ.get(ENV_CORS_ORIGINS, "*")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


def get_code_attempts() -> int:
    """How many fresh codes to try when a generated one is taken."""
    raw = os.environ.get(ENV_CODE_ATTEMPTS)
    if not raw:
        return DEFAULT_CODE_ATTEMPTS
    try:
        return max(1, int(raw))
    except ValueError:
        return DEFAULT_CODE_ATTEMPTS


def get_log_level() -> str:
    return os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
