"""
Tool System Data Models

Defines the core data structures of the chatlab tool system: the tool
definitions advertised to the model, the raw tool-call requests the model
emits, the tagged execution results folded back into the conversation and
the read-only context every tool executor receives.

All models use Pydantic for runtime validation.
"""

import json
import re
import time
from datetime import tzinfo
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_TOOL_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class ToolDefinition(BaseModel):
    """
    Advertised tool capability.

    The ``parameters`` field is a JSON schema describing the argument object;
    it is sent to the model verbatim and mirrors the argument model the
    executor validates against.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name")
    description: str = Field(..., description="Tool functionality description")
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the tool arguments",
    )
    time_scoped: bool = Field(
        False, description="Tool honours year/month and the ambient time filter"
    )

    @field_validator("name")
    @classmethod
    def validate_name_format(cls, v: str) -> str:
        """Validate tool name follows naming conventions"""
        name = (v or "").strip().lower()
        if not name:
            raise ValueError("Tool name cannot be empty")
        if not _TOOL_NAME_PATTERN.match(name):
            raise ValueError(
                "Tool name must start with a letter and contain only "
                "letters, numbers, and underscores"
            )
        return name

    @field_validator("description")
    @classmethod
    def validate_description_content(cls, v: str) -> str:
        """Ensure description is meaningful"""
        description = (v or "").strip()
        if len(description) < 10:
            raise ValueError("Tool description must be at least 10 characters")
        return description

    def to_openai_schema(self) -> dict[str, Any]:
        """Render the definition in OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolCallRequest(BaseModel):
    """
    Tool invocation request emitted by the model.

    ``arguments`` is the raw JSON text exactly as the model produced it; it is
    parsed and validated by the executor, never here.
    """

    id: str = Field(..., description="Call identifier assigned by the model")
    name: str = Field(..., description="Name of tool to execute")
    arguments: str = Field("", description="Raw JSON-encoded arguments")

    def to_openai(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class ToolExecutionStatus(str, Enum):
    """Tool execution status enumeration"""

    SUCCESS = "success"  # Completed successfully
    FAILED = "failed"  # Failed with error
    TIMEOUT = "timeout"  # Timed out during execution


class ToolExecutionResult(BaseModel):
    """
    Standardized tool execution result.

    Either a success payload or a failure reason; the dispatcher always
    materializes one of these per request instead of raising.
    """

    call_id: str = Field(..., description="Identifier of the originating call")
    tool_name: str = Field(..., description="Name of executed tool")

    status: ToolExecutionStatus = Field(..., description="Execution status")
    success: bool = Field(..., description="Whether execution was successful")

    result: Any = Field(None, description="Tool execution result (if successful)")
    error_message: str | None = Field(None, description="Error message (if failed)")
    error_type: str | None = Field(None, description="Error type for debugging")

    execution_time_ms: float = Field(
        default=0.0, ge=0.0, description="Execution time in milliseconds"
    )

    @model_validator(mode="after")
    def validate_consistency(self) -> "ToolExecutionResult":
        """Ensure success flag, status and error message agree"""
        if self.status == ToolExecutionStatus.SUCCESS and not self.success:
            raise ValueError("Success must be True when status is SUCCESS")
        if self.status != ToolExecutionStatus.SUCCESS and self.success:
            raise ValueError("Success must be False when status indicates failure")
        if not self.success and not self.error_message:
            raise ValueError("Error message must be provided for failed executions")
        if self.success and self.error_message:
            raise ValueError(
                "Error message should not be provided for successful executions"
            )
        return self

    @classmethod
    def succeeded(
        cls, call_id: str, tool_name: str, result: Any, start_time: float
    ) -> "ToolExecutionResult":
        return cls(
            call_id=call_id,
            tool_name=tool_name,
            status=ToolExecutionStatus.SUCCESS,
            success=True,
            result=result,
            execution_time_ms=(time.time() - start_time) * 1000,
        )

    @classmethod
    def failed(
        cls,
        call_id: str,
        tool_name: str,
        error_message: str,
        error_type: str,
        start_time: float | None = None,
        status: ToolExecutionStatus = ToolExecutionStatus.FAILED,
    ) -> "ToolExecutionResult":
        elapsed = (time.time() - start_time) * 1000 if start_time else 0.0
        return cls(
            call_id=call_id,
            tool_name=tool_name,
            status=status,
            success=False,
            error_message=error_message,
            error_type=error_type,
            execution_time_ms=elapsed,
        )

    @property
    def payload(self) -> Any:
        """Result payload on success, error text on failure."""
        return self.result if self.success else self.error_message

    def to_message_content(self) -> str:
        """Serialize the outcome as the content of a tool-role message."""
        if self.success:
            return json.dumps(self.result, ensure_ascii=False, default=str)
        return f"Error: {self.error_message}"


class TimeFilter(BaseModel):
    """Inclusive epoch-second window passed to the data store."""

    model_config = ConfigDict(frozen=True)

    start_ts: int = Field(..., description="Window start (inclusive)")
    end_ts: int = Field(..., description="Window end (inclusive)")

    @model_validator(mode="after")
    def validate_order(self) -> "TimeFilter":
        if self.start_ts > self.end_ts:
            raise ValueError("start_ts must not be after end_ts")
        return self

    def contains(self, timestamp: int) -> bool:
        return self.start_ts <= timestamp <= self.end_ts


class ToolContext(BaseModel):
    """
    Per-run read-only environment handed to every tool executor.

    Shared by all concurrently executing calls of a run; executors derive
    local overrides (e.g. a per-call year/month window) and never mutate it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    session_id: str = Field(..., description="Dataset / chat session identifier")
    time_filter: TimeFilter | None = Field(
        None, description="Ambient time filter chosen by the user"
    )
    store: Any = Field(..., description="ChatDataStore answering the queries")
    tz: tzinfo | None = Field(
        None, description="Timezone for calendar math; None means local time"
    )
