"""Data models for conversation turns, tools and user preferences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Conversation turns
# ---------------------------------------------------------------------------

Role = Literal["system", "user", "assistant", "tool"]


class Message(BaseModel):
    """A single turn in the context fed to a generation phase."""

    role: Role
    content: str = ""
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None
    name: str | None = None


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolInvocation(BaseModel):
    """A fully resolved tool call. ``call_id`` is provider bookkeeping and never serialized."""

    model_config = ConfigDict(populate_by_name=True)

    tool_name: str = Field(..., alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)
    call_id: str | None = Field(None, exclude=True)


@dataclass
class ToolDef:
    """Tool definition offered to the provider."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema (OpenAI-style) for any LLM provider."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolOutcome:
    """Result of dispatching one invocation."""

    invocation: ToolInvocation
    result: Any
    success: bool = True


# ---------------------------------------------------------------------------
# User preferences
# ---------------------------------------------------------------------------


class UserPreferences(BaseModel):
    """Personalisation settings stored with the user row."""

    ai_name: str = ""
    user_name: str = ""
    response_style: Literal["concise", "detailed"] = "detailed"
    interests: str = ""
    tone: str = ""
    favorite_topics: str = ""
    onboarding_completed: bool = False
