"""Assemble the ordered context turns for Phase 1 from structured inputs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .config import HISTORY_WINDOW
from .models import Message, UserPreferences


@dataclass(frozen=True)
class PromptOptions:
    """Per-request switches that change the instructions, not the query."""

    simpler_mode: bool = False
    history_window: int = HISTORY_WINDOW


SIMPLER_MODE_INSTRUCTION = (
    "**Simpler Mode:** Explain using plain words and short sentences, as if to a "
    "first-year student. Define any technical term the first time you use it."
)


def preference_turns(preferences: UserPreferences | None) -> list[Message]:
    """One system turn per preference the user has actually set."""
    if preferences is None:
        return []
    turns: list[str] = []
    if preferences.ai_name:
        turns.append(
            f'**Your Name:** The user has chosen to call you "{preferences.ai_name}". '
            "Use this name when referring to yourself."
        )
    if preferences.user_name:
        turns.append(
            f'**User\'s Name:** The user\'s name is "{preferences.user_name}". '
            "Use their name naturally in conversation when appropriate."
        )
    if preferences.interests:
        turns.append(
            f"**User Interests:** The user's interests are: {preferences.interests}. "
            "Use these interests to make your responses more relevant and engaging."
        )
    if preferences.tone:
        turns.append(
            f'**Preferred Tone:** The user prefers a "{preferences.tone}" tone. '
            "Adjust your responses to match this style."
        )
    if preferences.favorite_topics:
        turns.append(
            f"**Favorite Topics:** The user's favorite topics are: {preferences.favorite_topics}. "
            "Try to incorporate these topics into your suggestions and examples."
        )
    if preferences.response_style == "concise":
        turns.append(
            "**Response Style:** The user prefers concise and direct responses. "
            "Keep your answers brief and to the point."
        )
    else:
        turns.append(
            "**Response Style:** The user prefers detailed and comprehensive responses. "
            "Provide thorough explanations and detailed answers."
        )
    return [Message(role="system", content=text) for text in turns]


def trim_history(history: Iterable[Message], window: int) -> list[Message]:
    """Last ``window`` user/assistant turns, without a dangling user turn at the end."""
    turns = [m for m in history if m.role in ("user", "assistant")]
    trimmed = turns[-window:] if window > 0 else []
    if trimmed and trimmed[-1].role == "user":
        trimmed.pop()
    return [Message(role=m.role, content=m.content) for m in trimmed]


def build_context(
    persona: str,
    query: str,
    preferences: UserPreferences | None = None,
    history: Iterable[Message] = (),
    options: PromptOptions | None = None,
) -> list[Message]:
    """Ordered context for one request. Pure: no I/O, inputs are never mutated."""
    opts = options or PromptOptions()
    context: list[Message] = []
    if persona:
        context.append(Message(role="system", content=persona))
    context.extend(preference_turns(preferences))
    if opts.simpler_mode:
        context.append(Message(role="system", content=SIMPLER_MODE_INSTRUCTION))
    context.extend(trim_history(history, opts.history_window))
    context.append(Message(role="user", content=query))
    return context
