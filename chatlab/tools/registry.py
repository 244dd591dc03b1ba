"""
Tool Registry System

Central catalog of the tools an agent may advertise to the model. A registry
is an explicit instance created at startup and injected into the agent; it is
populated once and only read afterwards.

Key Features:
- Thread-safe registration and lookup
- Registration order preserved for advertisement
- Duplicate names rejected unless an overwrite is requested explicitly
- Module scanning for @tool decorated functions
- Per-tool result shapers for human-readable summaries
"""

import json
import logging
import threading
from collections.abc import Awaitable, Callable
from types import ModuleType
from typing import Any

from pydantic import BaseModel

from .decorators import ResultShaper, get_tool_spec, list_tools_in_module
from .models import ToolContext, ToolDefinition

logger = logging.getLogger("chatlab.tools.registry")

ToolExecutorFunc = Callable[[Any, ToolContext], Awaitable[Any] | Any]


class ToolRegistrationError(Exception):
    """Raised when tool registration fails"""

    pass


class ToolNotFoundError(Exception):
    """Raised when a requested tool is not found"""

    pass


class RegisteredTool:
    """Registry entry: definition, executor, argument model and shaper."""

    __slots__ = ("definition", "executor", "args_model", "summarizer")

    def __init__(
        self,
        definition: ToolDefinition,
        executor: ToolExecutorFunc,
        args_model: type[BaseModel] | None = None,
        summarizer: ResultShaper | None = None,
    ):
        self.definition = definition
        self.executor = executor
        self.args_model = args_model
        self.summarizer = summarizer


class ToolRegistry:
    """
    Registry mapping tool name to (definition, executor).

    Registering a name twice raises ToolRegistrationError; pass
    ``replace=True`` to overwrite deliberately. An overwritten tool keeps its
    original position in ``list_definitions()``.
    """

    def __init__(self):
        """Initialize empty registry"""
        self._tools: dict[str, RegisteredTool] = {}
        self._registry_lock = threading.RLock()

    def register(
        self,
        definition: ToolDefinition,
        executor: ToolExecutorFunc,
        *,
        args_model: type[BaseModel] | None = None,
        summarizer: ResultShaper | None = None,
        replace: bool = False,
    ) -> None:
        """
        Register a tool.

        Args:
            definition: Advertised tool definition
            executor: Callable invoked as ``executor(args, context)``
            args_model: Pydantic model validating the parsed arguments
            summarizer: Result shaper for the tool's payloads
            replace: Overwrite an existing registration with the same name

        Raises:
            ToolRegistrationError: If the name is taken and replace is False
        """
        if not callable(executor):
            raise ToolRegistrationError(
                f"Executor for tool '{definition.name}' is not callable"
            )

        with self._registry_lock:
            tool_name = definition.name

            if tool_name in self._tools:
                if not replace:
                    raise ToolRegistrationError(
                        f"Tool '{tool_name}' is already registered"
                    )
                logger.warning(f"Replacing registered tool '{tool_name}'")

            self._tools[tool_name] = RegisteredTool(
                definition, executor, args_model, summarizer
            )
            logger.debug(f"Registered tool '{tool_name}'")

    def register_tool(self, tool_func: Callable, *, replace: bool = False) -> None:
        """
        Register a function decorated with @tool.

        Raises:
            ToolRegistrationError: If the function is not a tool
        """
        spec = get_tool_spec(tool_func)
        if spec is None:
            raise ToolRegistrationError(
                f"'{getattr(tool_func, '__name__', tool_func)}' is not decorated with @tool"
            )

        self.register(
            spec.definition,
            tool_func,
            args_model=spec.args_model,
            summarizer=spec.summarizer,
            replace=replace,
        )

    def register_module(self, module: ModuleType, *, replace: bool = False) -> int:
        """
        Register every @tool function defined in a module.

        Returns:
            Number of tools registered
        """
        tools = list_tools_in_module(module)
        for tool_func in tools.values():
            self.register_tool(tool_func, replace=replace)

        logger.info(f"Registered {len(tools)} tools from module '{module.__name__}'")
        return len(tools)

    def list_definitions(self) -> list[ToolDefinition]:
        """Return all tool definitions in registration order."""
        with self._registry_lock:
            return [entry.definition for entry in self._tools.values()]

    def get(self, tool_name: str) -> RegisteredTool:
        """
        Get the full registry entry for a tool.

        Raises:
            ToolNotFoundError: If no tool has this name
        """
        with self._registry_lock:
            entry = self._tools.get(tool_name)
        if entry is None:
            raise ToolNotFoundError(f"Tool '{tool_name}' not found in registry")
        return entry

    def get_executor(self, tool_name: str) -> ToolExecutorFunc:
        """Get a registered executor by name."""
        return self.get(tool_name).executor

    def get_definition(self, tool_name: str) -> ToolDefinition:
        """Get a registered definition by name."""
        return self.get(tool_name).definition

    def summarize(self, tool_name: str, result: Any) -> str:
        """
        Shape a tool payload into a one-line, human-readable summary.

        Falls back to a generic summary for unknown tools or tools without a
        shaper.
        """
        with self._registry_lock:
            entry = self._tools.get(tool_name)

        if entry is not None and entry.summarizer is not None:
            try:
                return entry.summarizer(result)
            except Exception as e:
                logger.warning(f"Result shaper for '{tool_name}' failed: {e}")

        return _generic_summary(tool_name, result)

    def unregister(self, tool_name: str) -> bool:
        """
        Unregister a tool.

        Returns:
            True if tool was unregistered, False if not found
        """
        with self._registry_lock:
            if tool_name not in self._tools:
                return False
            del self._tools[tool_name]
            logger.info(f"Unregistered tool '{tool_name}'")
            return True

    def clear(self) -> None:
        """Remove all registered tools (primarily for testing)"""
        with self._registry_lock:
            self._tools.clear()

    def names(self) -> list[str]:
        with self._registry_lock:
            return list(self._tools.keys())

    def __contains__(self, tool_name: object) -> bool:
        with self._registry_lock:
            return tool_name in self._tools

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._tools)


def _generic_summary(tool_name: str, result: Any) -> str:
    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(result, ensure_ascii=False, default=str)
    if len(text) > 120:
        text = text[:119].rstrip() + "…"
    return f"{tool_name}: {text}"
