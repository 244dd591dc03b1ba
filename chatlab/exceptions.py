"""聊天记录分析代理相关异常类定义。"""

from typing import Any


class AgentException(Exception):
    """代理基础异常类。"""

    def __init__(
        self, message: str, agent_type: str | None = None, **kwargs: Any
    ) -> None:
        self.agent_type = agent_type
        self.context = kwargs
        super().__init__(message)


class OpenAIException(AgentException):
    """OpenAI API相关异常基类。"""

    retryable = False  # 默认不重试

    def __init__(
        self, message: str, error_code: str | None = None, **kwargs: Any
    ) -> None:
        self.error_code = error_code
        super().__init__(message, agent_type="openai", **kwargs)


class OpenAIAuthenticationException(OpenAIException):
    """OpenAI认证异常。"""

    retryable = False

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, error_code="authentication_failed", **kwargs)


class OpenAIRateLimitException(OpenAIException):
    """OpenAI速率限制异常。"""

    retryable = True

    def __init__(
        self, message: str, retry_after: int | None = None, **kwargs: Any
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, error_code="rate_limit_exceeded", **kwargs)


class OpenAITimeoutException(OpenAIException):
    """OpenAI请求超时异常。"""

    retryable = True

    def __init__(
        self, message: str, timeout_duration: float | None = None, **kwargs: Any
    ) -> None:
        self.timeout_duration = timeout_duration
        super().__init__(message, error_code="request_timeout", **kwargs)


class OpenAIModelException(OpenAIException):
    """OpenAI模型相关异常（模型不存在、请求参数无效等）。"""

    retryable = False

    def __init__(
        self, message: str, model_name: str | None = None, **kwargs: Any
    ) -> None:
        self.model_name = model_name
        super().__init__(message, error_code="model_error", **kwargs)


class ToolExecutionException(AgentException):
    """工具执行异常。"""

    def __init__(
        self, message: str, tool_name: str | None = None, **kwargs: Any
    ) -> None:
        self.tool_name = tool_name
        super().__init__(message, agent_type="tool", **kwargs)


class ToolArgumentError(ToolExecutionException):
    """工具参数无法解析或未通过校验。"""

    pass


# Agent loop exceptions
class AgentError(AgentException):
    """代理基础异常类。"""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, agent_type="chat_agent", **kwargs)


class AgentConfigurationError(AgentError):
    """代理配置错误。"""

    pass


class AgentExecutionError(AgentError):
    """代理执行错误（模型调用失败等）。"""

    pass


class ConversationStateError(AgentError):
    """对话历史违反工具调用配对约束。"""

    pass
