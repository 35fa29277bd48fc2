# config.py
"""
Runtime configuration for the Resume Coach backend.

Values come from the environment, with backend/.env loaded first so local
development works without exporting anything.
"""

import os
import logging
from pathlib import Path

from dotenv import load_dotenv

# Load .env from this file's directory and OVERRIDE any existing env vars
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path, override=True)


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


# ---------- Model provider ----------
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None  # e.g. https://openrouter.ai/api/v1
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
STRUCTURE_MODEL = os.getenv("STRUCTURE_MODEL", "gpt-4o-mini")
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))

# Ask the model to report bullets/skills via function calls in addition to fenced blocks
USE_TOOL_EXTRACTION = _get_bool("USE_TOOL_EXTRACTION", False)

# ---------- Sessions ----------
SESSION_TTL_SECONDS = _get_int("SESSION_TTL_SECONDS", 60 * 60)
SESSION_SWEEP_INTERVAL_SECONDS = _get_int("SESSION_SWEEP_INTERVAL_SECONDS", 10 * 60)
MAX_SESSION_MESSAGES = _get_int("MAX_SESSION_MESSAGES", 20)

# ---------- HTTP ----------
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]
MAX_UPLOAD_BYTES = _get_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)

# ---------- Logging ----------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    """Configure root logging once for the whole app."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
