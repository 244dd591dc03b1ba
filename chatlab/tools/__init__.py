"""
Tool system for the chat-log agent.

Provides tool declaration (@tool), an explicit ToolRegistry instance per
application, the concurrent ToolExecutor and the built-in query tools.
"""

from .builtin import create_default_registry, register_builtin_tools
from .decorators import ToolSpec, get_tool_spec, is_tool_function, tool
from .executor import ToolExecutor
from .models import (
    TimeFilter,
    ToolCallRequest,
    ToolContext,
    ToolDefinition,
    ToolExecutionResult,
    ToolExecutionStatus,
)
from .registry import (
    RegisteredTool,
    ToolNotFoundError,
    ToolRegistrationError,
    ToolRegistry,
)
from .time_range import format_time_range, month_window, resolve_time_filter

__all__ = [
    # Declaration
    "tool",
    "ToolSpec",
    "get_tool_spec",
    "is_tool_function",
    # Models
    "TimeFilter",
    "ToolCallRequest",
    "ToolContext",
    "ToolDefinition",
    "ToolExecutionResult",
    "ToolExecutionStatus",
    # Registry and execution
    "RegisteredTool",
    "ToolRegistry",
    "ToolRegistrationError",
    "ToolNotFoundError",
    "ToolExecutor",
    # Time ranges
    "format_time_range",
    "month_window",
    "resolve_time_filter",
    # Built-ins
    "create_default_registry",
    "register_builtin_tools",
]
