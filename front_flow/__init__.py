"""FRONT Flow backend package."""

from .app import create_app
from .config import get_llm_settings

__all__ = ["create_app", "get_llm_settings"]
