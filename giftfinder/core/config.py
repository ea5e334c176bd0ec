"""
Application Configuration

Loads environment variables and provides typed settings for the
recommendation core. Uses python-dotenv to load from a .env file at the
project root.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from the project root
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

# --- App Settings ---
PROJECT_NAME = "GiftFinder"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# --- Anthropic (candidate generation) ---
ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
GIFT_MODEL: str = os.getenv("GIFT_MODEL", "claude-sonnet-4-20250514")

# --- Brave Search (image search tier) ---
BRAVE_SEARCH_API_KEY: str = os.getenv("BRAVE_SEARCH_API_KEY", "")

# --- Timeouts (seconds) ---
GENERATION_TIMEOUT: float = float(os.getenv("GENERATION_TIMEOUT", "8.0"))
IMAGE_SEARCH_TIMEOUT: float = float(os.getenv("IMAGE_SEARCH_TIMEOUT", "3.0"))
IMAGE_PROBE_TIMEOUT: float = float(os.getenv("IMAGE_PROBE_TIMEOUT", "2.0"))

# --- Enrichment pool ---
MAX_CONCURRENT_ENRICHMENTS: int = int(os.getenv("MAX_CONCURRENT_ENRICHMENTS", "4"))


def is_anthropic_configured() -> bool:
    """Check if the Anthropic API key is present (generation enabled)."""
    return bool(ANTHROPIC_API_KEY)


def is_brave_search_configured() -> bool:
    """
    Check if Brave Search is available without raising exceptions.

    When absent, the web image tier is skipped and image resolution
    falls straight through to the curated stock images.
    """
    return bool(BRAVE_SEARCH_API_KEY)


def configure_logging(level: str | None = None) -> None:
    """Apply LOG_LEVEL to the root logger (idempotent)."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
