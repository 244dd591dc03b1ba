"""OpenAI配置类以及对话消息、请求选项和响应模型。"""

import os
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from ..tools.models import ToolCallRequest, ToolDefinition

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


@dataclass
class OpenAIConfig:
    """OpenAI API配置类，支持环境变量和灵活配置。

    兼容任何实现了OpenAI Chat Completions接口的服务（通过base_url指定）。
    """

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    """OpenAI API密钥，默认从环境变量OPENAI_API_KEY获取"""

    model: str = "gpt-4o-mini"
    """默认使用的模型"""

    base_url: str | None = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL"))
    """API基础URL，支持自定义OpenAI兼容服务"""

    timeout: int = 60
    """请求超时时间（秒）"""

    max_retries: int = 3
    """最大重试次数（不含首次调用）"""

    temperature: float = DEFAULT_TEMPERATURE
    """默认温度参数"""

    max_tokens: int | None = DEFAULT_MAX_TOKENS
    """默认最大token数量"""

    def __post_init__(self) -> None:
        """初始化后验证配置。"""
        if not self.api_key:
            raise ValueError(
                "OpenAI API key is required. "
                "Set OPENAI_API_KEY environment variable or provide api_key parameter."
            )

        if self.temperature < 0 or self.temperature > 2:
            raise ValueError("Temperature must be between 0 and 2")

        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")

        if self.max_retries < 0:
            raise ValueError("Max retries must be non-negative")


class ChatMessage(BaseModel):
    """对话历史中的一条消息。

    助手消息可以只携带工具调用请求（content为空）；
    工具消息必须通过tool_call_id关联到对应的工具调用。
    """

    role: Literal["system", "user", "assistant", "tool"] = Field(
        ..., description="消息角色：system, user, assistant, tool"
    )
    content: str = Field("", description="消息内容")
    tool_calls: list[ToolCallRequest] | None = Field(
        None, description="助手请求的工具调用"
    )
    tool_call_id: str | None = Field(None, description="工具消息对应的调用ID")

    @model_validator(mode="after")
    def validate_role_fields(self) -> "ChatMessage":
        """验证角色与工具字段的一致性。"""
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant messages may carry tool_calls")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require tool_call_id")
        if self.role != "tool" and self.tool_call_id:
            raise ValueError("Only tool messages may carry tool_call_id")
        return self

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: list[ToolCallRequest] | None = None
    ) -> "ChatMessage":
        return cls(role="assistant", content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "ChatMessage":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    def to_openai(self) -> dict[str, Any]:
        """转换为OpenAI消息格式。"""
        message: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_openai() for call in self.tool_calls]
        if self.tool_call_id:
            message["tool_call_id"] = self.tool_call_id
        return message


class ChatOptions(BaseModel):
    """单次模型调用的选项。

    tools为None时不向模型提供任何工具。
    """

    temperature: float = Field(DEFAULT_TEMPERATURE, ge=0, le=2, description="温度参数")
    max_tokens: int | None = Field(DEFAULT_MAX_TOKENS, gt=0, description="最大token数")
    tools: list[ToolDefinition] | None = Field(None, description="提供给模型的工具")
    model: str | None = Field(None, description="覆盖客户端默认模型")

    def without_tools(self) -> "ChatOptions":
        return self.model_copy(update={"tools": None})


class ChatResponse(BaseModel):
    """非流式模型响应。"""

    content: str = Field("", description="生成的文本内容")
    finish_reason: str | None = Field(None, description="完成原因")
    tool_calls: list[ToolCallRequest] | None = Field(None, description="工具调用请求")

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ChatStreamChunk(BaseModel):
    """流式响应片段。

    工具调用在终止片段上完整给出。
    """

    content: str | None = Field(None, description="文本片段")
    tool_calls: list[ToolCallRequest] | None = Field(None, description="工具调用请求")
    is_finished: bool = Field(False, description="是否为终止片段")
    finish_reason: str | None = Field(None, description="完成原因")


def create_config_from_env() -> OpenAIConfig:
    """从环境变量创建配置。

    Returns:
        OpenAIConfig: 从环境变量创建的配置实例

    Raises:
        ValueError: 如果必需的环境变量未设置
    """
    return OpenAIConfig(
        api_key=os.getenv("OPENAI_API_KEY", ""),
        model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        base_url=os.getenv("OPENAI_BASE_URL"),
        timeout=int(os.getenv("OPENAI_TIMEOUT", "60")),
        max_retries=int(os.getenv("OPENAI_MAX_RETRIES", "3")),
        temperature=float(os.getenv("OPENAI_TEMPERATURE", str(DEFAULT_TEMPERATURE))),
        max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", str(DEFAULT_MAX_TOKENS))),
    )
