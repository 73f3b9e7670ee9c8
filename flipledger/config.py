"""Runtime configuration read from the environment."""
from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Mapping, Optional

DEFAULT_VISION_MODEL = "claude-sonnet-4-20250514"
DEFAULT_RECOMMENDATION_MODEL = "claude-sonnet-4-20250514"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)


def _split_csv(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    A missing Anthropic key is not an error: the vision and recommendation
    paths fall back to OCR and the curated item list respectively.
    """

    anthropic_api_key: Optional[str] = None
    vision_model: str = DEFAULT_VISION_MODEL
    recommendation_model: str = DEFAULT_RECOMMENDATION_MODEL
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from ``env`` (defaults to ``os.environ``)."""

    env = os.environ if env is None else env
    return Settings(
        anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
        vision_model=env.get("FLIPLEDGER_VISION_MODEL", DEFAULT_VISION_MODEL),
        recommendation_model=env.get(
            "FLIPLEDGER_RECOMMENDATION_MODEL", DEFAULT_RECOMMENDATION_MODEL
        ),
        log_level=env.get("FLIPLEDGER_LOG_LEVEL", "INFO").upper(),
        cors_origins=_split_csv(env.get("FLIPLEDGER_CORS_ORIGINS")),
    )
