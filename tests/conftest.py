"""
pytest全局配置文件

提供聊天记录数据、工具上下文以及可编排的假模型客户端。
"""

from datetime import datetime, timezone

import pytest

from chatlab.llm.config import ChatResponse, ChatStreamChunk
from chatlab.store.base import ChatRecord
from chatlab.store.memory import InMemoryChatStore
from chatlab.tools.builtin import create_default_registry
from chatlab.tools.models import ToolCallRequest, ToolContext

SESSION_ID = "family-group"


def _ts(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


class ScriptedChatClient:
    """
    假的对话模型客户端，按脚本依次返回响应。

    responses / streams 中的元素按调用顺序消费，最后一个元素会被重复使用；
    元素也可以是异常（直接抛出）或 ``callable(messages, options)``。
    """

    def __init__(self, responses=None, streams=None):
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.chat_calls = []
        self.stream_calls = []
        self.closed_streams = 0

    @staticmethod
    def _next(script, messages, options):
        item = script.pop(0) if len(script) > 1 else script[0]
        if callable(item):
            item = item(messages, options)
        if isinstance(item, Exception):
            raise item
        return item

    async def chat(self, messages, options):
        self.chat_calls.append((list(messages), options))
        return self._next(self.responses, messages, options)

    async def chat_stream(self, messages, options):
        self.stream_calls.append((list(messages), options))
        chunks = self._next(self.streams, messages, options)
        try:
            for chunk in chunks:
                if isinstance(chunk, Exception):
                    raise chunk
                yield chunk
        finally:
            self.closed_streams += 1


def text_response(content: str) -> ChatResponse:
    return ChatResponse(content=content, finish_reason="stop")


def tool_response(*calls: ToolCallRequest) -> ChatResponse:
    return ChatResponse(content="", finish_reason="tool_calls", tool_calls=list(calls))


def text_stream(*fragments: str) -> list[ChatStreamChunk]:
    chunks = [ChatStreamChunk(content=f) for f in fragments]
    chunks.append(ChatStreamChunk(is_finished=True, finish_reason="stop"))
    return chunks


def tool_stream(*calls: ToolCallRequest) -> list[ChatStreamChunk]:
    return [
        ChatStreamChunk(
            tool_calls=list(calls), is_finished=True, finish_reason="tool_calls"
        )
    ]


@pytest.fixture
def chat_records() -> list[ChatRecord]:
    """跨越闰年二月和年末的小型群聊记录（UTC）。"""
    return [
        ChatRecord(
            sender_id="u2",
            sender_name="Bob",
            content="Happy new year soon",
            timestamp=_ts(2023, 12, 31, 23, 59),
        ),
        ChatRecord(
            sender_id="u1",
            sender_name="Alice",
            content="Anyone up for hiking this weekend?",
            timestamp=_ts(2024, 2, 10, 9, 15),
        ),
        ChatRecord(
            sender_id="u2",
            sender_name="Bob",
            content="Hiking sounds great",
            timestamp=_ts(2024, 2, 10, 9, 20),
        ),
        ChatRecord(
            sender_id="u1",
            sender_name="Alice",
            content="Leap day party tonight",
            timestamp=_ts(2024, 2, 29, 21, 0),
        ),
        ChatRecord(
            sender_id="u3",
            sender_name="Carol",
            content="Good morning",
            timestamp=_ts(2024, 3, 1, 8, 0),
        ),
        ChatRecord(
            sender_id="u1",
            sender_name="Alice",
            content="Photos from the hike",
            timestamp=_ts(2024, 3, 2, 21, 30),
        ),
    ]


@pytest.fixture
def chat_store(chat_records) -> InMemoryChatStore:
    return InMemoryChatStore(sessions={SESSION_ID: chat_records}, tz=timezone.utc)


@pytest.fixture
def tool_context(chat_store) -> ToolContext:
    return ToolContext(session_id=SESSION_ID, store=chat_store, tz=timezone.utc)


@pytest.fixture
def registry():
    return create_default_registry()


@pytest.fixture
def scripted_client():
    """返回ScriptedChatClient类，测试中按需构造。"""
    return ScriptedChatClient


@pytest.fixture
def chat_script():
    """构造脚本响应的辅助函数集合。"""

    class _Script:
        text = staticmethod(text_response)
        tools = staticmethod(tool_response)
        text_stream = staticmethod(text_stream)
        tool_stream = staticmethod(tool_stream)
        ts = staticmethod(_ts)

        @staticmethod
        def call(name: str, arguments: str = "{}", call_id: str = "call_1"):
            return ToolCallRequest(id=call_id, name=name, arguments=arguments)

    return _Script
