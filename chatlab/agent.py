"""
Chat Log Agent

This module provides the Agent class, the orchestration loop that answers a
question about a chat log by alternating model calls with read-only tool
calls.

Each run follows the same bounded state machine:

- ROUND: send the conversation and the advertised tools to the model
- TOOL_DISPATCH: execute the requested calls concurrently and append one tool
  message per call
- DONE: the model answered without requesting tools
- FORCED_FINISH: the round budget is spent; the model is asked once more,
  without tools, to answer from what it has gathered

Two modes share the state machine: buffered (``execute``) and streaming
(``stream`` / ``execute_stream``). Run state is created per call, so one
Agent instance may serve concurrent runs.
"""

import inspect
import logging
import threading
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from chatlab.conversation import Conversation
from chatlab.exceptions import AgentExecutionError, ToolArgumentError
from chatlab.llm.base import ChatModelClient
from chatlab.llm.config import ChatOptions, ChatResponse
from chatlab.llm.prompts import (
    SUPPORTED_LANGUAGES,
    build_system_prompt,
    get_forced_finish_message,
)
from chatlab.models import AgentResult, AgentRunConfig, AgentStreamChunk
from chatlab.tools.builtin import create_default_registry
from chatlab.tools.executor import ToolExecutor
from chatlab.tools.models import (
    ToolCallRequest,
    ToolContext,
    ToolDefinition,
    ToolExecutionResult,
)
from chatlab.tools.registry import ToolRegistry

logger = logging.getLogger("chatlab.agent")

ChunkHandler = Callable[[AgentStreamChunk], Awaitable[None] | None]


class CancellationToken:
    """
    Cooperative cancellation flag for a streaming run.

    May be cancelled from any thread; the loop checks it after every model
    chunk and after every tool batch.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class AgentRunState:
    """Mutable state of exactly one run."""

    conversation: Conversation
    tools_used: list[str] = field(default_factory=list)
    tool_rounds: int = 0
    content: str = ""
    result: AgentResult | None = None

    def finish(self, content: str, cancelled: bool = False) -> AgentResult:
        self.content = content
        self.result = AgentResult(
            content=content,
            tools_used=list(self.tools_used),
            tool_rounds=self.tool_rounds,
            cancelled=cancelled,
        )
        return self.result


class AgentEventStream:
    """
    Async iterator over the events of one streaming run.

    Closing the stream (``aclose`` or leaving ``async with``) before it is
    exhausted cancels the run; no further model call or tool dispatch starts.
    ``result`` is available once the stream has ended or been closed.
    """

    def __init__(
        self,
        events: AsyncGenerator[AgentStreamChunk, None],
        state: AgentRunState,
        cancel_token: CancellationToken,
    ):
        self._events = events
        self._state = state
        self.cancel_token = cancel_token

    def __aiter__(self) -> "AgentEventStream":
        return self

    async def __anext__(self) -> AgentStreamChunk:
        return await self._events.__anext__()

    async def aclose(self) -> None:
        if self._state.result is None:
            self.cancel_token.cancel()
        await self._events.aclose()
        if self._state.result is None:
            self._state.finish(self._state.content, cancelled=True)

    async def __aenter__(self) -> "AgentEventStream":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    @property
    def result(self) -> AgentResult | None:
        return self._state.result


class Agent:
    """
    聊天记录问答代理。

    通过有界的工具调用循环回答用户关于聊天记录的问题。
    代理实例本身不保存任何运行状态，可以被多个并发运行共享。

    Example:
        registry = create_default_registry()
        agent = Agent(context, client, registry)

        result = await agent.execute("最近大家在聊什么？")

        async with agent.stream("谁最活跃？") as events:
            async for event in events:
                render(event)
    """

    def __init__(
        self,
        context: ToolContext,
        client: ChatModelClient,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        config: AgentRunConfig | None = None,
        prompt_language: str = "zh",
    ):
        """
        初始化代理。

        Args:
            context: 本次会话的工具上下文（会话ID、时间过滤、数据存储）
            client: 对话模型客户端
            registry: 工具注册表
            executor: 工具执行器，默认基于registry创建
            config: 循环配置（最大工具轮数、模型调用选项）
            prompt_language: 系统提示语言，zh或en
        """
        if prompt_language not in SUPPORTED_LANGUAGES:
            raise ValueError(
                f"Unsupported prompt language '{prompt_language}', "
                f"expected one of {SUPPORTED_LANGUAGES}"
            )

        self.context = context
        self.client = client
        self.registry = registry
        self.executor = executor or ToolExecutor(registry)
        self.config = config or AgentRunConfig()
        self.prompt_language = prompt_language

    def __repr__(self) -> str:
        return (
            f"Agent(session_id='{self.context.session_id}', "
            f"tools={len(self.registry)}, max_tool_rounds={self.config.max_tool_rounds})"
        )

    # ==================== Run Setup ====================

    def _start_run(self, question: str) -> tuple[AgentRunState, list[ToolDefinition]]:
        if not question or not question.strip():
            raise ValueError("Question cannot be empty")

        logger.info(f"Agent run started: {question[:100]}")

        tools = self.registry.list_definitions()
        logger.info(f"Available tools ({len(tools)}): {[t.name for t in tools]}")

        system_prompt = build_system_prompt(tools, self.prompt_language)
        return AgentRunState(conversation=Conversation(system_prompt, question)), tools

    def _round_options(self, tools: list[ToolDefinition]) -> ChatOptions:
        return self.config.llm_options.model_copy(update={"tools": tools or None})

    def _forced_finish(self, state: AgentRunState) -> None:
        logger.warning(
            f"Reached max tool rounds ({self.config.max_tool_rounds}), forcing final answer"
        )
        state.conversation.add_user(get_forced_finish_message(self.prompt_language))

    # ==================== Tool Dispatch ====================

    @staticmethod
    def _assign_call_ids(
        state: AgentRunState, tool_calls: list[ToolCallRequest]
    ) -> list[ToolCallRequest]:
        """
        Give every call in the batch a non-empty id unique within the batch.

        Missing or repeated ids are replaced by ``call_{round}_{index}``.
        """
        round_number = state.tool_rounds + 1
        taken = {call.id for call in tool_calls if call.id}
        seen: set[str] = set()
        assigned = []

        for index, call in enumerate(tool_calls):
            if call.id and call.id not in seen:
                seen.add(call.id)
                assigned.append(call)
                continue

            new_id = f"call_{round_number}_{index}"
            while new_id in taken or new_id in seen:
                new_id += "_"
            logger.warning(
                f"Tool call '{call.name}' has a missing or repeated id "
                f"{call.id!r}, using '{new_id}'"
            )
            seen.add(new_id)
            assigned.append(call.model_copy(update={"id": new_id}))

        return assigned

    async def _dispatch(
        self, state: AgentRunState, tool_calls: list[ToolCallRequest]
    ) -> list[ToolExecutionResult]:
        """Run one TOOL_DISPATCH step and fold the results into the conversation."""
        logger.info(f"Dispatching tool calls: {[call.name for call in tool_calls]}")

        state.conversation.add_tool_calls(tool_calls)
        results = await self.executor.execute_all(tool_calls, self.context)

        for call, result in zip(tool_calls, results):
            state.tools_used.append(call.name)
            content = result.to_message_content()
            state.conversation.add_tool_result(call.id, content)
            logger.info(
                f"Tool result: tool={call.name}, success={result.success}, "
                f"length={len(content)}"
            )

        state.tool_rounds += 1
        return results

    def _tool_start_params(self, call: ToolCallRequest) -> dict[str, Any] | None:
        try:
            params = self.executor.parse_arguments(call)
        except ToolArgumentError:
            return None

        time_filter = self.context.time_filter
        if time_filter is not None and call.name in self.registry:
            if self.registry.get_definition(call.name).time_scoped:
                params = {**params, "_time_filter": time_filter.model_dump()}
        return params

    def _tool_result_event(
        self, call: ToolCallRequest, result: ToolExecutionResult
    ) -> AgentStreamChunk:
        if result.success:
            summary = self.registry.summarize(call.name, result.result)
        else:
            summary = f"{call.name} failed: {result.error_message}"
        return AgentStreamChunk(
            type="tool_result",
            tool_name=call.name,
            tool_call_id=call.id,
            tool_result=result.payload,
            summary=summary,
        )

    # ==================== Buffered Mode ====================

    async def _call_model(
        self, state: AgentRunState, options: ChatOptions
    ) -> ChatResponse:
        try:
            response = await self.client.chat(state.conversation.messages, options)
        except Exception as e:
            logger.error(f"Model call failed: {e}")
            raise AgentExecutionError(f"Model call failed: {e}") from e

        logger.info(
            f"LLM response: finish_reason={response.finish_reason}, "
            f"has_tool_calls={response.has_tool_calls}, "
            f"content_length={len(response.content)}"
        )
        return response

    async def execute(self, question: str) -> AgentResult:
        """
        执行一次完整的问答（非流式）。

        Args:
            question: 用户问题

        Returns:
            AgentResult: 最终回答、使用的工具和工具轮数

        Raises:
            AgentExecutionError: 模型调用失败
        """
        state, tools = self._start_run(question)
        options = self._round_options(tools)

        while state.tool_rounds < self.config.max_tool_rounds:
            response = await self._call_model(state, options)

            if not response.tool_calls:
                result = state.finish(response.content)
                logger.info(
                    f"Agent run completed: tools_used={result.tools_used}, "
                    f"tool_rounds={result.tool_rounds}"
                )
                return result

            await self._dispatch(
                state, self._assign_call_ids(state, response.tool_calls)
            )

        self._forced_finish(state)
        response = await self._call_model(state, options.without_tools())
        return state.finish(response.content)

    # ==================== Streaming Mode ====================

    def stream(
        self, question: str, cancel_token: CancellationToken | None = None
    ) -> AgentEventStream:
        """
        以事件流的方式执行问答。

        Args:
            question: 用户问题
            cancel_token: 取消令牌，默认新建

        Returns:
            AgentEventStream: 可异步迭代的事件流
        """
        token = cancel_token or CancellationToken()
        state, tools = self._start_run(question)
        logger.info("Streaming run started")
        return AgentEventStream(self._stream_events(state, tools, token), state, token)

    async def execute_stream(
        self,
        question: str,
        on_chunk: ChunkHandler,
        cancel_token: CancellationToken | None = None,
    ) -> AgentResult:
        """
        流式执行问答，将每个事件推送给on_chunk（同步或异步回调）。

        Returns:
            AgentResult: 运行结果；被取消时cancelled为True

        Raises:
            AgentExecutionError: 模型调用失败（error事件已先行推送）
        """
        events = self.stream(question, cancel_token)
        async with events:
            async for chunk in events:
                outcome = on_chunk(chunk)
                if inspect.isawaitable(outcome):
                    await outcome
        return events.result

    async def _stream_round(
        self,
        state: AgentRunState,
        options: ChatOptions,
        token: CancellationToken,
        pending: list[ToolCallRequest],
    ) -> AsyncIterator[AgentStreamChunk]:
        """
        Stream one model call, forwarding text fragments.

        The last tool-call decision seen is left in ``pending``.
        """
        state.content = ""
        stream = self.client.chat_stream(state.conversation.messages, options)
        finish_reason = None

        try:
            async for chunk in stream:
                if chunk.content:
                    state.content += chunk.content
                    yield AgentStreamChunk.text(chunk.content)

                if chunk.tool_calls:
                    pending[:] = chunk.tool_calls

                if chunk.is_finished:
                    finish_reason = chunk.finish_reason
                    break
                if token.is_cancelled:
                    break
        except Exception as e:
            logger.error(f"Model stream failed: {e}")
            yield AgentStreamChunk.failure(str(e))
            raise AgentExecutionError(f"Model stream failed: {e}") from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.info(
            f"LLM response: finish_reason={finish_reason}, "
            f"has_tool_calls={bool(pending)}, content_length={len(state.content)}"
        )

    async def _stream_events(
        self, state: AgentRunState, tools: list[ToolDefinition], token: CancellationToken
    ) -> AsyncGenerator[AgentStreamChunk, None]:
        options = self._round_options(tools)

        while state.tool_rounds < self.config.max_tool_rounds:
            if token.is_cancelled:
                break

            tool_calls: list[ToolCallRequest] = []
            async with aclosing(
                self._stream_round(state, options, token, tool_calls)
            ) as round_events:
                async for event in round_events:
                    yield event

            if not tool_calls:
                if token.is_cancelled:
                    break
                state.finish(state.content)
                logger.info(
                    f"Streaming run completed: tools_used={state.tools_used}, "
                    f"tool_rounds={state.tool_rounds}"
                )
                yield AgentStreamChunk.done()
                return

            if token.is_cancelled:
                break

            tool_calls = self._assign_call_ids(state, tool_calls)
            for call in tool_calls:
                yield AgentStreamChunk(
                    type="tool_start",
                    tool_name=call.name,
                    tool_call_id=call.id,
                    tool_params=self._tool_start_params(call),
                )

            results = await self._dispatch(state, tool_calls)
            for call, result in zip(tool_calls, results):
                yield self._tool_result_event(call, result)

        else:
            if not token.is_cancelled:
                self._forced_finish(state)
                async with aclosing(
                    self._stream_round(state, options.without_tools(), token, [])
                ) as round_events:
                    async for event in round_events:
                        yield event

                if not token.is_cancelled:
                    state.finish(state.content)
                    yield AgentStreamChunk.done()
                    return

        logger.info(f"Streaming run cancelled after {state.tool_rounds} tool rounds")
        state.finish(state.content, cancelled=True)


# ==================== Convenience Functions ====================


async def run_agent(
    question: str,
    context: ToolContext,
    client: ChatModelClient,
    registry: ToolRegistry | None = None,
    config: AgentRunConfig | None = None,
) -> AgentResult:
    """
    创建Agent并执行一次问答。

    Example:
        result = await run_agent("谁最活跃？", context, client)
    """
    agent = Agent(context, client, registry or create_default_registry(), config=config)
    return await agent.execute(question)


async def run_agent_stream(
    question: str,
    context: ToolContext,
    on_chunk: ChunkHandler,
    client: ChatModelClient,
    registry: ToolRegistry | None = None,
    config: AgentRunConfig | None = None,
    cancel_token: CancellationToken | None = None,
) -> AgentResult:
    """创建Agent并流式执行一次问答。"""
    agent = Agent(context, client, registry or create_default_registry(), config=config)
    return await agent.execute_stream(question, on_chunk, cancel_token)
