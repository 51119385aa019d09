"""Canonical chunk vocabulary shared by every stage of the pipeline."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import ToolInvocation


class TextChunk(BaseModel):
    """Incremental fragment of assistant prose."""

    type: Literal["text"] = "text"
    content: str


class ToolCodeChunk(BaseModel):
    """One or more completed tool invocations."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["tool_code"] = "tool_code"
    invocations: list[ToolInvocation] = Field(..., alias="toolInvocations")


class ErrorChunk(BaseModel):
    """Terminal, user-facing failure description."""

    type: Literal["error"] = "error"
    content: str


Chunk = Annotated[Union[TextChunk, ToolCodeChunk, ErrorChunk], Field(discriminator="type")]

chunk_adapter: TypeAdapter[Chunk] = TypeAdapter(Chunk)


__all__ = ["Chunk", "TextChunk", "ToolCodeChunk", "ErrorChunk", "chunk_adapter"]
