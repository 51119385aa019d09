"""Utilities for loading the persona system prompt from disk."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import DEFAULT_SYSTEM_PROMPT_PATH

FALLBACK_PERSONA = (
    "You are a careful academic assistant. Answer precisely, show your reasoning "
    "step by step for calculations, and say so plainly when you are unsure."
)

_cached_prompt: Optional[str] = None


def _read_file(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return ""
    return text.strip()


def get_default_system_prompt(path: Path | None = None) -> str:
    """Return the persona text, cached after first read.

    If the prompt file does not exist or cannot be read, the built-in fallback persona is used.
    """
    global _cached_prompt
    if path is not None:
        return _read_file(path) or FALLBACK_PERSONA
    if _cached_prompt is None:
        _cached_prompt = _read_file(DEFAULT_SYSTEM_PROMPT_PATH)
    return _cached_prompt or FALLBACK_PERSONA
