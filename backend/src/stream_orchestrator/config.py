"""Orchestrator configuration: paths, provider defaults, retry budget."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from main_config import (
    DB_DIR as _DB_DIR,
    DEFAULT_SYSTEM_PROMPT_PATH as _DEFAULT_SYSTEM_PROMPT_PATH,
    HISTORY_DB_PATH as _HISTORY_DB_PATH,
    USERS_DB_PATH as _USERS_DB_PATH,
    USER_DIR as _USER_DIR,
)

# Path objects for use in this package (main_config uses os.path strings)
DB_DIR = Path(_DB_DIR)
USER_DIR = Path(_USER_DIR)
HISTORY_DB_PATH = Path(_HISTORY_DB_PATH)
USERS_DB_PATH = Path(_USERS_DB_PATH)
DEFAULT_SYSTEM_PROMPT_PATH = Path(_DEFAULT_SYSTEM_PROMPT_PATH)

DEFAULT_MODEL = os.getenv("CHAT_MODEL", "groq:llama3-70b-8192")
GROQ_BASE_URL = "https://api.groq.com/openai/v1"

MAX_PROVIDER_ATTEMPTS = int(os.getenv("PROVIDER_MAX_ATTEMPTS", "3"))
PROVIDER_RETRY_DELAY = float(os.getenv("PROVIDER_RETRY_DELAY", "0.5"))

# Number of stored history turns replayed into the context.
HISTORY_WINDOW = 5


@dataclass(frozen=True)
class DecodingConfig:
    """Sampling parameters sent with every provider call."""

    temperature: float = 0.1
    top_p: float = 0.1
    max_tokens: int = 8192
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def to_kwargs(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry budget for one provider phase."""

    max_attempts: int = MAX_PROVIDER_ATTEMPTS
    delay: float = PROVIDER_RETRY_DELAY


DEFAULT_DECODING = DecodingConfig()
DEFAULT_RETRY_POLICY = RetryPolicy()

