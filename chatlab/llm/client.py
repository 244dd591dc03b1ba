"""OpenAI兼容对话模型客户端。"""

import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from ..exceptions import (
    OpenAIAuthenticationException,
    OpenAIException,
    OpenAIModelException,
    OpenAIRateLimitException,
    OpenAITimeoutException,
)
from ..tools.models import ToolCallRequest
from .config import (
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ChatStreamChunk,
    OpenAIConfig,
)
from .retry import RetryConfig, RetryHandler

logger = logging.getLogger("chatlab.llm")


class OpenAIClient:
    """OpenAI API客户端，实现ChatModelClient协议。

    该客户端负责：
    - 将对话历史与工具定义转换为OpenAI请求格式
    - 非流式调用的指数退避重试
    - 流式响应中按index重组工具调用增量，并在终止片段上一次性给出
    - SDK异常分类为OpenAIException体系
    """

    def __init__(self, config: OpenAIConfig, retry_config: RetryConfig | None = None):
        """初始化OpenAI客户端。

        Args:
            config: OpenAI配置实例
            retry_config: 重试配置，默认按config.max_retries构造
        """
        self.config = config
        self._async_client: AsyncOpenAI | None = None
        self._retry_handler = RetryHandler(
            retry_config or RetryConfig(max_attempts=config.max_retries + 1)
        )

        logger.info(
            f"OpenAI客户端初始化完成，模型: {config.model}, "
            f"超时: {config.timeout}s, 重试: {config.max_retries}次"
        )

    @property
    def async_client(self) -> AsyncOpenAI:
        """获取异步客户端实例。"""
        if self._async_client is None:
            client_kwargs: dict[str, Any] = {
                "api_key": self.config.api_key,
                "timeout": self.config.timeout,
                # 重试由RetryHandler负责
                "max_retries": 0,
            }
            if self.config.base_url:
                client_kwargs["base_url"] = self.config.base_url

            self._async_client = AsyncOpenAI(**client_kwargs)
        return self._async_client

    def _build_request(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": options.model or self.config.model,
            "messages": [msg.to_openai() for msg in messages],
            "temperature": options.temperature,
        }
        if options.max_tokens is not None:
            request["max_tokens"] = options.max_tokens
        if options.tools:
            request["tools"] = [t.to_openai_schema() for t in options.tools]
        return request

    async def chat(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> ChatResponse:
        """非流式对话调用，速率限制和超时会按退避策略重试。

        Args:
            messages: 对话历史
            options: 调用选项（tools为None时不提供工具）

        Returns:
            模型响应

        Raises:
            OpenAIException: OpenAI API调用异常
        """
        return await self._retry_handler.call(
            self._chat_once, messages, options, log_name="chat"
        )

    async def _chat_once(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> ChatResponse:
        request = self._build_request(messages, options)

        try:
            start_time = time.time()
            response = await self.async_client.chat.completions.create(**request)
        except Exception as e:
            logger.error(f"chat completion失败: {e}")
            raise self._handle_exception(e) from e

        elapsed_time = time.time() - start_time
        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolCallRequest(
                id=call.id or "",
                name=call.function.name,
                arguments=call.function.arguments or "",
            )
            for call in (message.tool_calls or [])
        ]

        logger.info(
            f"chat completion完成，耗时: {elapsed_time:.2f}s, "
            f"tokens: {response.usage.total_tokens if response.usage else 'N/A'}"
        )

        return ChatResponse(
            content=message.content or "",
            finish_reason=choice.finish_reason,
            tool_calls=tool_calls or None,
        )

    async def chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[ChatStreamChunk]:
        """流式对话调用。

        文本增量逐片产出；工具调用增量按index累积，
        在带finish_reason的片段（或流结束时）一次性给出。

        Yields:
            ChatStreamChunk，最后一个片段is_finished为True
        """
        request = self._build_request(messages, options)
        pending: dict[int, dict[str, str]] = {}
        finished = False
        stream = None

        try:
            stream = await self.async_client.chat.completions.create(
                **request, stream=True
            )

            async for chunk in stream:
                if finished or not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                content = delta.content if delta is not None else None

                for call in (delta.tool_calls if delta is not None else None) or []:
                    slot = pending.setdefault(
                        call.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if call.id:
                        slot["id"] = call.id
                    if call.function is not None:
                        slot["name"] += call.function.name or ""
                        slot["arguments"] += call.function.arguments or ""

                if choice.finish_reason:
                    finished = True
                    yield ChatStreamChunk(
                        content=content or None,
                        tool_calls=self._assemble_tool_calls(pending),
                        is_finished=True,
                        finish_reason=choice.finish_reason,
                    )
                elif content:
                    yield ChatStreamChunk(content=content)

        except OpenAIException:
            raise
        except Exception as e:
            logger.error(f"流式响应异常: {e}")
            raise self._handle_exception(e) from e
        finally:
            # 提前结束读取时也要释放HTTP响应
            if stream is not None:
                await stream.close()

        if not finished:
            yield ChatStreamChunk(
                tool_calls=self._assemble_tool_calls(pending), is_finished=True
            )

    @staticmethod
    def _assemble_tool_calls(
        pending: dict[int, dict[str, str]],
    ) -> list[ToolCallRequest] | None:
        calls = [
            ToolCallRequest(
                id=slot["id"] or f"call_{index}",
                name=slot["name"],
                arguments=slot["arguments"],
            )
            for index, slot in sorted(pending.items())
            if slot["name"]
        ]
        return calls or None

    def _handle_exception(self, error: Exception) -> OpenAIException:
        """处理和转换异常类型。

        Args:
            error: 原始异常

        Returns:
            转换后的OpenAI异常
        """
        if isinstance(error, OpenAIException):
            return error

        error_msg = str(error)

        if isinstance(error, openai.AuthenticationError):
            return OpenAIAuthenticationException(f"认证失败: {error_msg}")
        if isinstance(error, openai.RateLimitError):
            return OpenAIRateLimitException(
                f"速率限制: {error_msg}", retry_after=_retry_after(error)
            )
        if isinstance(error, openai.APITimeoutError):
            return OpenAITimeoutException(
                f"请求超时: {error_msg}", timeout_duration=self.config.timeout
            )
        if isinstance(error, (openai.NotFoundError, openai.BadRequestError)):
            return OpenAIModelException(
                f"模型请求无效: {error_msg}", model_name=self.config.model
            )

        lowered = error_msg.lower()
        if "authentication" in lowered or "401" in error_msg:
            return OpenAIAuthenticationException(f"认证失败: {error_msg}")
        elif "rate_limit" in lowered or "429" in error_msg:
            return OpenAIRateLimitException(f"速率限制: {error_msg}")
        elif "timeout" in lowered or "timed out" in lowered:
            return OpenAITimeoutException(f"请求超时: {error_msg}")
        else:
            return OpenAIException(f"OpenAI API错误: {error_msg}")

    async def close_async(self) -> None:
        """关闭异步客户端连接。"""
        if self._async_client:
            await self._async_client.close()
            self._async_client = None
            logger.info("异步OpenAI客户端连接已关闭")

    async def __aenter__(self) -> "OpenAIClient":
        """异步上下文管理器入口。"""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """异步上下文管理器退出。"""
        await self.close_async()


def _retry_after(error: Exception) -> int | None:
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    try:
        return int(float(headers.get("retry-after")))
    except (TypeError, ValueError):
        return None
