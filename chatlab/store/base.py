"""
Chat-log data store interface.

The agent's query tools read the imported chat log exclusively through this
protocol. Every call returns a complete in-memory result; caching and
indexing are the store's own business.
"""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ..tools.models import TimeFilter


class UnknownSessionError(LookupError):
    """Raised when a store has no chat log for the requested session."""

    pass


class ChatRecord(BaseModel):
    """One imported chat message."""

    sender_id: str = Field(..., description="Stable sender identifier")
    sender_name: str = Field(..., description="Display name of the sender")
    content: str = Field("", description="Message text")
    timestamp: int = Field(..., ge=0, description="Send time, epoch seconds")


class MessageQueryResult(BaseModel):
    """A page of messages plus the total number of matches."""

    total: int = Field(0, ge=0)
    messages: list[ChatRecord] = Field(default_factory=list)


class MemberActivity(BaseModel):
    member_id: str
    name: str
    message_count: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0.0, le=100.0)


class HourlyActivity(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    message_count: int = Field(..., ge=0)


class WeekdayActivity(BaseModel):
    weekday: int = Field(..., ge=1, le=7, description="Monday = 1 ... Sunday = 7")
    message_count: int = Field(..., ge=0)


class DailyActivity(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    message_count: int = Field(..., ge=0)


@runtime_checkable
class ChatDataStore(Protocol):
    """Read-only queries the built-in tools rely on."""

    async def search_messages(
        self,
        session_id: str,
        keywords: list[str],
        time_filter: TimeFilter | None,
        limit: int,
        offset: int = 0,
    ) -> MessageQueryResult: ...

    async def get_recent_messages(
        self, session_id: str, time_filter: TimeFilter | None, limit: int
    ) -> MessageQueryResult: ...

    async def get_member_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[MemberActivity]: ...

    async def get_hourly_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[HourlyActivity]: ...

    async def get_weekday_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[WeekdayActivity]: ...

    async def get_daily_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[DailyActivity]: ...
