"""Configuration helpers for the FRONT Flow backend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping

from dotenv import load_dotenv

ENV_PREFIX = "FRONT_"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_LOG_LEVEL = "INFO"

load_dotenv(override=False)


@dataclass(frozen=True)
class LLMSettings:
    """Settings container for the generation gateway.

    The API key is taken from ``OPENAI_API_KEY`` and falls back to
    ``FRONT_LLM_API_KEY`` so the backend can point at any OpenAI-compatible
    endpoint through ``FRONT_LLM_BASE_URL``.
    """

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    base_url: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def has_api_key(self) -> bool:
        """True when a credential is configured."""

        return bool(self.api_key)


def _read_timeout(environ: Mapping[str, str]) -> float:
    raw = environ.get(f"{ENV_PREFIX}LLM_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


def settings_from_environ(environ: Mapping[str, str]) -> LLMSettings:
    """Build settings from an arbitrary mapping of environment variables."""

    return LLMSettings(
        api_key=environ.get("OPENAI_API_KEY") or environ.get(f"{ENV_PREFIX}LLM_API_KEY") or None,
        model=environ.get(f"{ENV_PREFIX}LLM_MODEL") or DEFAULT_MODEL,
        base_url=environ.get(f"{ENV_PREFIX}LLM_BASE_URL") or None,
        timeout_seconds=_read_timeout(environ),
        log_level=(environ.get(f"{ENV_PREFIX}LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """Read environment variables and return cached settings."""

    return settings_from_environ(os.environ)
