"""LLM（大语言模型）集成模块。

主要组件：
- ChatModelClient: 代理循环依赖的模型调用协议
- OpenAIClient: OpenAI兼容API客户端，支持工具调用和流式响应
- OpenAIConfig: OpenAI配置管理，支持环境变量
- ChatMessage / ChatOptions / ChatResponse / ChatStreamChunk: 对话数据模型
- build_system_prompt: 带当前日期的系统提示
- RetryHandler: 智能重试处理器，支持指数退避
"""

from .base import ChatModelClient
from .client import OpenAIClient
from .config import (
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ChatStreamChunk,
    OpenAIConfig,
    create_config_from_env,
)
from .prompts import build_system_prompt, get_forced_finish_message
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig, RetryHandler, retry_on_failure

__all__ = [
    # 协议与客户端
    "ChatModelClient",
    "OpenAIClient",
    # 配置与数据模型
    "OpenAIConfig",
    "ChatMessage",
    "ChatOptions",
    "ChatResponse",
    "ChatStreamChunk",
    "create_config_from_env",
    # 提示
    "build_system_prompt",
    "get_forced_finish_message",
    # 重试机制
    "RetryConfig",
    "RetryHandler",
    "retry_on_failure",
    "DEFAULT_RETRY_CONFIG",
]
