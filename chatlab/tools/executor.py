"""
Concurrent Tool Execution System

Validates and executes the batch of tool calls requested by one assistant
turn. Each request is processed independently:

- raw JSON arguments are parsed and validated against the tool's argument
  model
- the executor is looked up in the injected ToolRegistry
- sync executors run in a worker thread, async executors are awaited, both
  under a per-call timeout
- every failure is converted into a failed ToolExecutionResult

The returned list always has the same length and order as the request list,
whatever order the calls complete in.
"""

import asyncio
import inspect
import json
import logging
import time
from typing import Any

from pydantic import ValidationError

from ..exceptions import ToolArgumentError
from .models import (
    ToolCallRequest,
    ToolContext,
    ToolExecutionResult,
    ToolExecutionStatus,
)
from .registry import ToolNotFoundError, ToolRegistry

logger = logging.getLogger("chatlab.tools.executor")


class ToolExecutor:
    """
    Tool dispatcher with bounded concurrent execution.

    Failures never escape ``execute_all``; they are materialized as failed
    results so sibling calls and the agent loop carry on.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        max_workers: int = 5,
        default_timeout: float = 30.0,
    ):
        """
        Initialize tool executor.

        Args:
            registry: Registry to resolve tool names against
            max_workers: Maximum concurrently running tool calls
            default_timeout: Per-call execution timeout in seconds
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")

        self.registry = registry
        self.max_workers = max_workers
        self.default_timeout = default_timeout

    def parse_arguments(self, request: ToolCallRequest) -> dict[str, Any]:
        """
        Parse the raw argument payload of a request.

        An empty payload is treated as an empty object.

        Raises:
            ToolArgumentError: If the payload is not a JSON object
        """
        raw = (request.arguments or "").strip()
        if not raw:
            return {}

        try:
            params = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolArgumentError(
                f"Invalid JSON arguments for tool '{request.name}': {e.msg} "
                f"at position {e.pos}",
                tool_name=request.name,
            ) from e

        if not isinstance(params, dict):
            raise ToolArgumentError(
                f"Arguments for tool '{request.name}' must be a JSON object, "
                f"got {type(params).__name__}",
                tool_name=request.name,
            )
        return params

    async def execute_single_tool(
        self, request: ToolCallRequest, context: ToolContext
    ) -> ToolExecutionResult:
        """
        Execute a single tool call.

        Args:
            request: Tool call emitted by the model
            context: Read-only run context

        Returns:
            Tool execution result (never raises for tool-level failures)
        """
        start_time = time.time()

        try:
            params = self.parse_arguments(request)
        except ToolArgumentError as e:
            logger.warning(str(e))
            return ToolExecutionResult.failed(
                request.id, request.name, str(e), "ToolArgumentError", start_time
            )

        try:
            entry = self.registry.get(request.name)
        except ToolNotFoundError as e:
            logger.warning(str(e))
            return ToolExecutionResult.failed(
                request.id, request.name, str(e), "ToolNotFoundError", start_time
            )

        if entry.args_model is not None:
            try:
                args = entry.args_model.model_validate(params)
            except ValidationError as e:
                message = f"Invalid arguments for tool '{request.name}': " + "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                    for err in e.errors()
                )
                logger.warning(message)
                return ToolExecutionResult.failed(
                    request.id, request.name, message, "ToolArgumentError", start_time
                )
        else:
            args = params

        try:
            if inspect.iscoroutinefunction(entry.executor):
                pending = entry.executor(args, context)
            else:
                pending = asyncio.to_thread(entry.executor, args, context)

            raw_result = await asyncio.wait_for(pending, timeout=self.default_timeout)
            if inspect.isawaitable(raw_result):
                raw_result = await raw_result

        except asyncio.TimeoutError:
            logger.warning(
                f"Tool '{request.name}' timed out after {self.default_timeout}s"
            )
            return ToolExecutionResult.failed(
                request.id,
                request.name,
                f"Tool execution timed out after {self.default_timeout}s",
                "TimeoutError",
                start_time,
                status=ToolExecutionStatus.TIMEOUT,
            )
        except Exception as e:
            logger.error(f"Unexpected error executing tool '{request.name}': {e}")
            return ToolExecutionResult.failed(
                request.id,
                request.name,
                str(e) or type(e).__name__,
                type(e).__name__,
                start_time,
            )

        result = ToolExecutionResult.succeeded(
            request.id, request.name, raw_result, start_time
        )
        logger.debug(
            f"Tool '{request.name}' completed successfully in {result.execution_time_ms:.1f}ms"
        )
        return result

    async def execute_all(
        self, requests: list[ToolCallRequest], context: ToolContext
    ) -> list[ToolExecutionResult]:
        """
        Execute all tool calls of one assistant turn concurrently.

        Args:
            requests: Ordered tool calls
            context: Read-only run context shared by every call

        Returns:
            Results in the same order as ``requests``
        """
        if not requests:
            return []

        start_time = time.time()
        semaphore = asyncio.Semaphore(min(self.max_workers, len(requests)))

        async def bounded_execute(request: ToolCallRequest) -> ToolExecutionResult:
            async with semaphore:
                return await self.execute_single_tool(request, context)

        results = await asyncio.gather(*(bounded_execute(r) for r in requests))

        total_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Executed {len(results)} tool calls in {total_time_ms:.1f}ms, "
            f"success rate: {sum(1 for r in results if r.success)}/{len(results)}"
        )
        return list(results)
