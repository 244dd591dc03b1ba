"""Chat-log data access used by the query tools."""

from .base import (
    ChatDataStore,
    ChatRecord,
    DailyActivity,
    HourlyActivity,
    MemberActivity,
    MessageQueryResult,
    UnknownSessionError,
    WeekdayActivity,
)
from .memory import InMemoryChatStore

__all__ = [
    "ChatDataStore",
    "ChatRecord",
    "DailyActivity",
    "HourlyActivity",
    "InMemoryChatStore",
    "MemberActivity",
    "MessageQueryResult",
    "UnknownSessionError",
    "WeekdayActivity",
]
