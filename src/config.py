"""Runtime settings read from the environment (and .env via python-dotenv)."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from src.discovery.pipeline import DEFAULT_MAX_RESULTS
from src.discovery.retrieval import DEFAULT_BATCH_SIZE
from src.gmail.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


def _env_number(name: str, default: float, cast: Callable[[str], float] = int) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Gmail connection and discovery tuning."""

    access_token: str = ""
    api_base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_results: int = DEFAULT_MAX_RESULTS
    batch_size: int = DEFAULT_BATCH_SIZE

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables."""
        return cls(
            access_token=os.environ.get("GMAIL_ACCESS_TOKEN", ""),
            api_base_url=os.environ.get("GMAIL_API_BASE_URL", DEFAULT_BASE_URL),
            timeout_seconds=_env_number("GMAIL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, float),
            max_results=int(_env_number("DISCOVERY_MAX_RESULTS", DEFAULT_MAX_RESULTS)),
            batch_size=int(_env_number("DISCOVERY_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
        )
