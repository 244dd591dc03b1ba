"""智能重试机制，支持指数退避和异常分类。"""

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, TypeVar

from ..exceptions import (
    OpenAIAuthenticationException,
    OpenAIRateLimitException,
    OpenAITimeoutException,
)

logger = logging.getLogger("chatlab.llm.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """重试配置。"""

    max_attempts: int = 3
    """最大尝试次数（含首次调用）"""

    base_delay: float = 1.0
    """基础延迟时间（秒）"""

    max_delay: float = 60.0
    """最大延迟时间（秒）"""

    backoff_factor: float = 2.0
    """退避因子"""

    jitter: bool = True
    """是否添加随机抖动"""

    retry_on_exceptions: tuple = (
        OpenAIRateLimitException,
        OpenAITimeoutException,
    )
    """可重试的异常类型"""

    permanent_exceptions: tuple = (OpenAIAuthenticationException,)
    """永久性异常，不应重试"""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


class RetryHandler:
    """智能重试处理器。"""

    def __init__(self, config: RetryConfig | None = None):
        """初始化重试处理器。

        Args:
            config: 重试配置，如果为None则使用默认配置
        """
        self.config = config or RetryConfig()

    def calculate_delay(self, attempt: int, base_delay: float | None = None) -> float:
        """计算重试延迟时间。

        Args:
            attempt: 当前重试次数（从0开始）
            base_delay: 基础延迟时间，如果为None则使用配置中的值

        Returns:
            计算出的延迟时间（秒）
        """
        base = self.config.base_delay if base_delay is None else base_delay

        delay = min(base * (self.config.backoff_factor**attempt), self.config.max_delay)

        if self.config.jitter:
            jitter_range = delay * 0.1  # 10%的抖动
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0, delay)

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """判断是否应该重试。

        Args:
            exception: 捕获的异常
            attempt: 已失败的尝试序号（从0开始）

        Returns:
            是否应该重试
        """
        if attempt + 1 >= self.config.max_attempts:
            return False

        if isinstance(exception, self.config.permanent_exceptions):
            logger.info(f"永久性异常，不重试: {exception}")
            return False

        if isinstance(exception, self.config.retry_on_exceptions):
            logger.info(f"检测到可重试异常，准备重试: {exception}")
            return True

        if getattr(exception, "retryable", False):
            logger.info(f"异常标记为可重试: {exception}")
            return True

        return False

    def get_retry_delay(self, exception: Exception, attempt: int) -> float:
        """获取重试延迟时间，速率限制时遵循服务端给出的retry_after。"""
        base_delay = self.config.base_delay

        if isinstance(exception, OpenAIRateLimitException) and exception.retry_after:
            base_delay = max(base_delay, exception.retry_after)

        return self.calculate_delay(attempt, base_delay)

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        log_name: str | None = None,
        **kwargs: Any,
    ) -> T:
        """带重试地执行异步函数。

        Raises:
            最后一次失败的异常
        """
        name = log_name or getattr(func, "__name__", "call")
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.should_retry(e, attempt):
                    logger.error(f"异步函数 {name} 执行失败，不再重试: {e}")
                    raise

                delay = self.get_retry_delay(e, attempt)
                logger.warning(
                    f"异步函数 {name} 执行失败 (尝试 {attempt + 1}/{self.config.max_attempts})，"
                    f"{delay:.2f}秒后重试: {e}"
                )
                await asyncio.sleep(delay)
                attempt += 1


def retry_on_failure(config: RetryConfig | None = None) -> Callable:
    """异步函数重试装饰器工厂。

    Args:
        config: 重试配置

    Returns:
        重试装饰器
    """
    handler = RetryHandler(config)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("retry_on_failure only supports async functions")

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            return await handler.call(func, *args, log_name=func.__name__, **kwargs)

        return async_wrapper

    return decorator


# 预定义的重试配置
DEFAULT_RETRY_CONFIG = RetryConfig()
