"""Process-level settings and the managed-provider bootstrap.

Settings are read from the environment once, at startup. The client core
never touches os.environ itself; it receives a Settings value and, for the
managed provider, an already-built SDK client (or None).

Environment variables:

    API_KEY / GEMINI_API_KEY   managed provider credential
    TALEFORGE_TEXT_MODEL       managed text model   (default gemini-2.5-flash)
    TALEFORGE_IMAGE_MODEL      managed image model  (default imagen-3.0-generate-002)
    TALEFORGE_TIMEOUT          HTTP timeout seconds (default 120)
    TALEFORGE_APP_URL          HTTP-Referer sent to remote providers
"""

from __future__ import annotations

import logging
import math
import os

from google import genai
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "imagen-3.0-generate-002"
DEFAULT_TIMEOUT = 120.0


def _env_timeout() -> float:
    raw = os.getenv("TALEFORGE_TIMEOUT", "")
    if not raw.strip():
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if not math.isfinite(value) or value <= 0:
        logger.warning(
            "invalid TALEFORGE_TIMEOUT %r; using %.0fs", raw, DEFAULT_TIMEOUT
        )
        return DEFAULT_TIMEOUT
    return value


class Settings(BaseModel):
    api_key: str = ""
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    timeout: float = DEFAULT_TIMEOUT
    app_url: str = "http://localhost"
    app_title: str = "AI Story Generator"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            api_key=os.getenv("API_KEY") or os.getenv("GEMINI_API_KEY", ""),
            text_model=os.getenv("TALEFORGE_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            image_model=os.getenv("TALEFORGE_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            timeout=_env_timeout(),
            app_url=os.getenv("TALEFORGE_APP_URL", "http://localhost"),
        )


def create_managed_client(settings: Settings) -> genai.Client | None:
    """Build the managed SDK client, or None when no credential is configured."""
    if not settings.api_key:
        logger.warning("no managed provider credential; the managed provider is disabled")
        return None
    logger.info("managed provider enabled text_model=%s", settings.text_model)
    return genai.Client(api_key=settings.api_key)
