"""
Centralized OpenAI client + model configuration.

This keeps AI-related configuration DRY and consistent across endpoints/services.
"""

from __future__ import annotations

from functools import lru_cache

from openai import OpenAI

from ..config import Config

PROVIDER_NAME = "openai"


@lru_cache(maxsize=1)
def get_openai_client() -> OpenAI:
    if not Config.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY is required for OpenAI-backed features")
    return OpenAI(api_key=Config.OPENAI_API_KEY)


def chat_model() -> str:
    return Config.OPENAI_MODEL
