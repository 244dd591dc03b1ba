"""对话模型客户端协议。"""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from .config import ChatMessage, ChatOptions, ChatResponse, ChatStreamChunk


@runtime_checkable
class ChatModelClient(Protocol):
    """代理循环所依赖的模型调用接口。

    chat_stream 产出的最后一个片段 is_finished 为 True，
    并携带本轮完整的工具调用请求（若有）。
    """

    async def chat(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> ChatResponse: ...

    def chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[ChatStreamChunk]: ...
