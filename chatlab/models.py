"""
Core data models for the chat-log agent.

This module defines the run configuration, the final result of a run and the
events emitted while a run is streamed.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from chatlab.llm.config import ChatOptions

StreamChunkType = Literal["content", "tool_start", "tool_result", "done", "error"]


class AgentRunConfig(BaseModel):
    """Per-agent loop settings."""

    max_tool_rounds: int = Field(
        5, ge=0, description="Maximum tool-dispatch rounds before the forced finish"
    )
    llm_options: ChatOptions = Field(
        default_factory=ChatOptions, description="Options for every model call"
    )


class AgentResult(BaseModel):
    """Complete result of one agent run."""

    content: str = Field("", description="Final answer text")
    tools_used: list[str] = Field(
        default_factory=list,
        description="Name of every dispatched tool call, in dispatch order",
    )
    tool_rounds: int = Field(0, ge=0, description="Number of tool-dispatch rounds")
    cancelled: bool = Field(False, description="Whether the run was cancelled")


class AgentStreamChunk(BaseModel):
    """Individual event in a streaming agent run."""

    type: StreamChunkType = Field(..., description="Event type")
    content: str | None = Field(None, description="Text fragment (content)")
    tool_name: str | None = Field(None, description="Tool name (tool_start/tool_result)")
    tool_call_id: str | None = Field(None, description="Originating call id")
    tool_params: dict[str, Any] | None = Field(
        None, description="Parsed arguments (tool_start); None if unparseable"
    )
    tool_result: Any = Field(None, description="Payload or error text (tool_result)")
    summary: str | None = Field(None, description="One-line result summary")
    error: str | None = Field(None, description="Error message (error)")
    is_finished: bool = Field(False, description="Set on the terminal event")

    @classmethod
    def text(cls, content: str) -> "AgentStreamChunk":
        return cls(type="content", content=content)

    @classmethod
    def done(cls) -> "AgentStreamChunk":
        return cls(type="done", is_finished=True)

    @classmethod
    def failure(cls, error: str) -> "AgentStreamChunk":
        return cls(type="error", error=error, is_finished=True)
