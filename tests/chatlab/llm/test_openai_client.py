"""测试OpenAI客户端，使用Mock避免真实API调用。"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import httpx
import openai
import pytest

from chatlab.exceptions import (
    OpenAIAuthenticationException,
    OpenAIException,
    OpenAIModelException,
    OpenAIRateLimitException,
    OpenAITimeoutException,
)
from chatlab.llm.client import OpenAIClient
from chatlab.llm.config import ChatMessage, ChatOptions, OpenAIConfig
from chatlab.llm.retry import RetryConfig
from chatlab.tools.builtin import create_default_registry

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completion(content=None, tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(total_tokens=42),
    )


def _function_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id, function=SimpleNamespace(name=name, arguments=arguments)
    )


def _delta_chunk(content=None, tool_calls=None, finish_reason=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)]
    )


def _tool_delta(index, call_id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


class _FakeStream:
    """Stands in for the SDK AsyncStream: async iteration plus close()."""

    def __init__(self, items):
        self._items = list(items)
        self.closed = False

    async def __aiter__(self):
        for item in self._items:
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.closed = True


def _rate_limit_error(retry_after="2"):
    response = httpx.Response(
        429, headers={"retry-after": retry_after}, request=_REQUEST
    )
    return openai.RateLimitError("Rate limit reached", response=response, body=None)


class TestOpenAIClient:
    """测试OpenAI客户端类。"""

    @pytest.fixture
    def config(self) -> OpenAIConfig:
        """测试配置fixture。"""
        return OpenAIConfig(
            api_key="test-key",
            model="gpt-4o-mini",
            base_url=None,
            timeout=30,
            max_retries=2,
        )

    @pytest.fixture
    def client(self, config: OpenAIConfig) -> OpenAIClient:
        """测试客户端fixture，重试不等待。"""
        return OpenAIClient(
            config, RetryConfig(max_attempts=3, base_delay=0, jitter=False)
        )

    @pytest.fixture
    def messages(self) -> list[ChatMessage]:
        return [ChatMessage.system("你是助手"), ChatMessage.user("你好")]

    def _mock_create(self, client: OpenAIClient, **kwargs) -> AsyncMock:
        create = AsyncMock(**kwargs)
        client._async_client = Mock()
        client._async_client.chat.completions.create = create
        return create

    def test_client_initialization(self, config: OpenAIConfig):
        """测试客户端初始化，重试次数来自max_retries。"""
        client = OpenAIClient(config)

        assert client.config == config
        assert client._async_client is None
        assert client._retry_handler.config.max_attempts == 3

    @patch("chatlab.llm.client.AsyncOpenAI")
    def test_async_client_property(self, mock_async_openai, client: OpenAIClient):
        """测试异步客户端属性，SDK自身不重试。"""
        mock_instance = AsyncMock()
        mock_async_openai.return_value = mock_instance

        assert client.async_client is mock_instance
        assert client.async_client is mock_instance
        mock_async_openai.assert_called_once_with(
            api_key="test-key", timeout=30, max_retries=0
        )

    @patch("chatlab.llm.client.AsyncOpenAI")
    def test_async_client_base_url(self, mock_async_openai):
        """测试自定义base_url。"""
        client = OpenAIClient(
            OpenAIConfig(api_key="k", base_url="http://localhost:8000/v1")
        )
        client.async_client

        assert mock_async_openai.call_args.kwargs["base_url"] == "http://localhost:8000/v1"

    @pytest.mark.asyncio
    async def test_chat_text_response(self, client, messages):
        """测试普通文本响应。"""
        create = self._mock_create(client, return_value=_completion("你好！"))

        response = await client.chat(messages, ChatOptions())

        assert response.content == "你好！"
        assert response.finish_reason == "stop"
        assert response.tool_calls is None
        create.assert_called_once_with(
            model="gpt-4o-mini",
            messages=[
                {"role": "system", "content": "你是助手"},
                {"role": "user", "content": "你好"},
            ],
            temperature=0.7,
            max_tokens=2048,
        )

    @pytest.mark.asyncio
    async def test_chat_with_tools(self, client, messages):
        """测试工具定义和工具调用响应。"""
        definitions = create_default_registry().list_definitions()
        create = self._mock_create(
            client,
            return_value=_completion(
                None,
                [_function_call("call_a", "get_member_stats", '{"top_n": 3}')],
                "tool_calls",
            ),
        )

        response = await client.chat(
            messages, ChatOptions(tools=definitions, max_tokens=None, model="gpt-4o")
        )

        assert response.content == ""
        assert response.has_tool_calls
        assert response.tool_calls[0].id == "call_a"
        assert response.tool_calls[0].arguments == '{"top_n": 3}'

        request = create.call_args.kwargs
        assert request["model"] == "gpt-4o"
        assert "max_tokens" not in request
        assert [t["function"]["name"] for t in request["tools"]] == [
            d.name for d in definitions
        ]

    @pytest.mark.asyncio
    async def test_chat_tool_call_without_id(self, client, messages):
        """测试兼容服务返回空的工具调用id。"""
        self._mock_create(
            client,
            return_value=_completion(
                None, [_function_call(None, "get_time_stats", None)], "tool_calls"
            ),
        )

        response = await client.chat(messages, ChatOptions())

        assert response.tool_calls[0].id == ""
        assert response.tool_calls[0].arguments == ""

    @pytest.mark.asyncio
    async def test_chat_retries_rate_limit(self, client, messages):
        """测试速率限制后重试成功。"""
        create = self._mock_create(
            client, side_effect=[_rate_limit_error(), _completion("ok")]
        )

        with patch("chatlab.llm.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await client.chat(messages, ChatOptions())

        assert response.content == "ok"
        assert create.call_count == 2
        # retry-after头优先于base_delay
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_chat_gives_up_after_max_attempts(self, client, messages):
        """测试超过最大尝试次数后抛出异常。"""
        create = self._mock_create(
            client, side_effect=openai.APITimeoutError(request=_REQUEST)
        )

        with pytest.raises(OpenAITimeoutException) as exc_info:
            await client.chat(messages, ChatOptions())

        assert create.call_count == 3
        assert exc_info.value.timeout_duration == 30

    @pytest.mark.asyncio
    async def test_chat_authentication_not_retried(self, client, messages):
        """测试认证失败不重试。"""
        response = httpx.Response(401, request=_REQUEST)
        create = self._mock_create(
            client,
            side_effect=openai.AuthenticationError(
                "Invalid API key", response=response, body=None
            ),
        )

        with pytest.raises(OpenAIAuthenticationException):
            await client.chat(messages, ChatOptions())

        assert create.call_count == 1

    def test_exception_classification(self, client):
        """测试异常分类。"""
        not_found = openai.NotFoundError(
            "model not found", response=httpx.Response(404, request=_REQUEST), body=None
        )

        assert isinstance(client._handle_exception(not_found), OpenAIModelException)
        assert isinstance(
            client._handle_exception(Exception("HTTP 429 Too Many Requests")),
            OpenAIRateLimitException,
        )
        assert isinstance(
            client._handle_exception(Exception("read timed out")),
            OpenAITimeoutException,
        )
        generic = client._handle_exception(Exception("boom"))
        assert type(generic) is OpenAIException

        rate_limited = client._handle_exception(_rate_limit_error("7"))
        assert rate_limited.retry_after == 7

        original = OpenAIRateLimitException("already mapped")
        assert client._handle_exception(original) is original

    @pytest.mark.asyncio
    async def test_stream_text(self, client, messages):
        """测试流式文本片段。"""
        create = self._mock_create(
            client,
            return_value=_FakeStream(
                [
                    _delta_chunk("H"),
                    _delta_chunk("i"),
                    _delta_chunk(None, finish_reason="stop"),
                ]
            ),
        )

        chunks = [c async for c in client.chat_stream(messages, ChatOptions())]

        assert [c.content for c in chunks] == ["H", "i", None]
        assert chunks[-1].is_finished
        assert chunks[-1].finish_reason == "stop"
        assert chunks[-1].tool_calls is None
        assert create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_reassembles_tool_calls(self, client, messages):
        """测试按index累积工具调用增量。"""
        self._mock_create(
            client,
            return_value=_FakeStream(
                [
                    _delta_chunk(tool_calls=[_tool_delta(0, "call_x", "search_", '{"key')]),
                    _delta_chunk(tool_calls=[_tool_delta(0, None, "messages", 'words": ["a"]}')]),
                    _delta_chunk(tool_calls=[_tool_delta(1, "call_y", "get_member_stats", "{}")]),
                    _delta_chunk(finish_reason="tool_calls"),
                    _delta_chunk("ignored after finish"),
                ]
            ),
        )

        chunks = [c async for c in client.chat_stream(messages, ChatOptions())]

        assert len(chunks) == 1
        calls = chunks[0].tool_calls
        assert [(c.id, c.name, c.arguments) for c in calls] == [
            ("call_x", "search_messages", '{"keywords": ["a"]}'),
            ("call_y", "get_member_stats", "{}"),
        ]

    @pytest.mark.asyncio
    async def test_stream_without_finish_reason(self, client, messages):
        """测试流在没有finish_reason时结束。"""
        self._mock_create(
            client,
            return_value=_FakeStream(
                [
                    _delta_chunk("partial"),
                    _delta_chunk(tool_calls=[_tool_delta(0, None, "get_time_stats", "{}")]),
                ]
            ),
        )

        chunks = [c async for c in client.chat_stream(messages, ChatOptions())]

        assert chunks[0].content == "partial"
        assert chunks[-1].is_finished
        assert chunks[-1].finish_reason is None
        assert chunks[-1].tool_calls[0].id == "call_0"

    @pytest.mark.asyncio
    async def test_stream_error_mapped(self, client, messages):
        """测试流式异常转换。"""
        self._mock_create(
            client,
            return_value=_FakeStream([_delta_chunk("a"), Exception("connection timed out")]),
        )

        received = []
        with pytest.raises(OpenAITimeoutException):
            async for chunk in client.chat_stream(messages, ChatOptions()):
                received.append(chunk)

        assert [c.content for c in received] == ["a"]

    @pytest.mark.asyncio
    async def test_stream_response_closed(self, client, messages):
        """测试读完、出错后都会关闭SDK流。"""
        finished = _FakeStream([_delta_chunk("ok", finish_reason="stop")])
        self._mock_create(client, return_value=finished)
        [c async for c in client.chat_stream(messages, ChatOptions())]
        assert finished.closed

        failing = _FakeStream([Exception("connection timed out")])
        self._mock_create(client, return_value=failing)
        with pytest.raises(OpenAITimeoutException):
            [c async for c in client.chat_stream(messages, ChatOptions())]
        assert failing.closed

    @pytest.mark.asyncio
    async def test_stream_closed_when_reader_stops_early(self, client, messages):
        """测试调用方提前停止读取时关闭SDK流。"""
        sdk_stream = _FakeStream(
            [_delta_chunk("a"), _delta_chunk("b"), _delta_chunk(None, finish_reason="stop")]
        )
        self._mock_create(client, return_value=sdk_stream)

        chunks = client.chat_stream(messages, ChatOptions())
        first = await chunks.__anext__()
        await chunks.aclose()

        assert first.content == "a"
        assert sdk_stream.closed

    @pytest.mark.asyncio
    async def test_close_async(self, client):
        """测试关闭异步客户端。"""
        mock_async = AsyncMock()
        client._async_client = mock_async

        async with client:
            pass

        mock_async.close.assert_awaited_once()
        assert client._async_client is None
