"""
Tool Decorator System

Implements the @tool decorator that turns a plain async (or sync) function
into a registrable chatlab tool. The decorator:

1. Resolves the tool's argument model (explicit or from the first parameter's
   type hint)
2. Derives the advertised JSON schema from that model
3. Builds an immutable ToolDefinition
4. Attaches the definition, argument model and result shaper to the function

Unlike a global auto-registering decorator, nothing is registered here: the
decorated function is handed to an explicit ToolRegistry instance, so each
application (or test) owns its registry.

Usage Example:
    class EchoArgs(BaseModel):
        text: str

    @tool("echo", "Return the given text unchanged")
    async def echo(args: EchoArgs, context: ToolContext) -> dict:
        return {"text": args.text}

    registry.register_tool(echo)
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar, get_type_hints

from pydantic import BaseModel

from .models import ToolDefinition

logger = logging.getLogger("chatlab.tools")

F = TypeVar("F", bound=Callable[..., Any])

ResultShaper = Callable[[Any], str]


@dataclass(frozen=True)
class ToolSpec:
    """Everything the registry needs to know about a decorated tool."""

    definition: ToolDefinition
    args_model: type[BaseModel] | None
    summarizer: ResultShaper | None = None


def tool(
    name: str | None = None,
    description: str | None = None,
    args_model: type[BaseModel] | None = None,
    time_scoped: bool = False,
    summarizer: ResultShaper | None = None,
) -> Callable[[F], F]:
    """
    Decorator to convert a function into a chatlab tool.

    Args:
        name: Tool name (defaults to function name)
        description: Tool description (defaults to function docstring)
        args_model: Pydantic model validating the arguments; defaults to the
            type hint of the function's first parameter
        time_scoped: Whether the tool honours year/month and the ambient
            time filter of the run
        summarizer: Result shaper producing a one-line summary of a payload

    Returns:
        The original function with a ``__tool_spec__`` attribute
    """

    def decorator(func: F) -> F:
        func_name = name or func.__name__
        func_description = description or (
            inspect.cleandoc(func.__doc__) if func.__doc__ else f"Execute {func_name}"
        )

        model = args_model or _infer_args_model(func)
        parameters = (
            _build_parameters_schema(model)
            if model is not None
            else {"type": "object", "properties": {}}
        )

        definition = ToolDefinition(
            name=func_name,
            description=func_description,
            parameters=parameters,
            time_scoped=time_scoped,
        )

        func.__tool_spec__ = ToolSpec(
            definition=definition, args_model=model, summarizer=summarizer
        )
        logger.debug(f"Declared tool '{definition.name}'")
        return func

    return decorator


def _infer_args_model(func: Callable) -> type[BaseModel] | None:
    """Use the first parameter's annotation when it is a pydantic model."""
    params = list(inspect.signature(func).parameters.values())
    if not params:
        return None

    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        return None

    hint = hints.get(params[0].name)
    if inspect.isclass(hint) and issubclass(hint, BaseModel):
        return hint
    return None


def _build_parameters_schema(model: type[BaseModel]) -> dict[str, Any]:
    """
    Derive a compact JSON schema from a pydantic argument model.

    Optional fields are rendered as their non-null variant and titles are
    dropped; models tend to follow flat schemas more reliably.
    """
    schema = model.model_json_schema()
    schema.pop("title", None)

    properties: dict[str, Any] = {}
    for prop_name, prop in schema.get("properties", {}).items():
        prop = dict(prop)
        prop.pop("title", None)

        variants = prop.pop("anyOf", None)
        if variants:
            non_null = [v for v in variants if v.get("type") != "null"]
            if len(non_null) == 1:
                prop.update(non_null[0])
            else:
                prop["anyOf"] = non_null

        if prop.get("default", ...) is None:
            prop.pop("default")

        properties[prop_name] = prop

    result: dict[str, Any] = {"type": "object", "properties": properties}
    if schema.get("required"):
        result["required"] = list(schema["required"])
    if "$defs" in schema:
        result["$defs"] = schema["$defs"]
    return result


def get_tool_spec(tool_func: Callable) -> ToolSpec | None:
    """
    Extract the tool spec from a decorated function.

    Args:
        tool_func: Function decorated with @tool

    Returns:
        ToolSpec if function is a tool, None otherwise
    """
    return getattr(tool_func, "__tool_spec__", None)


def is_tool_function(func: Callable) -> bool:
    """Check if a function is decorated with @tool."""
    return hasattr(func, "__tool_spec__")


def list_tools_in_module(module) -> dict[str, Callable]:
    """
    Discover all tools in a Python module.

    Args:
        module: Module to scan for tools

    Returns:
        Dictionary mapping tool names to the decorated functions, in
        definition order
    """
    tools = {}

    for obj in vars(module).values():
        if callable(obj) and is_tool_function(obj):
            tools[get_tool_spec(obj).definition.name] = obj

    return tools
