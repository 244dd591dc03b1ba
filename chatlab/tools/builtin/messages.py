"""
Message Retrieval Tools

Keyword search and recent-message listing over the imported chat log. Both
tools honour a per-call year/month and otherwise fall back to the ambient time
filter of the run.
"""

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

from ..decorators import tool
from ..models import TimeFilter, ToolContext
from ..time_range import format_time_range, format_timestamp, resolve_time_filter

if TYPE_CHECKING:
    from ...store.base import MessageQueryResult

logger = logging.getLogger("chatlab.tools.messages")

DEFAULT_SEARCH_LIMIT = 200
MAX_SEARCH_LIMIT = 5000
DEFAULT_RECENT_LIMIT = 100


class TimeScopedArgs(BaseModel):
    """Optional calendar window shared by the time-scoped tools."""

    year: int | None = Field(
        None, ge=1, le=9999, description="Only include messages from this year, e.g. 2024"
    )
    month: int | None = Field(
        None,
        ge=1,
        le=12,
        description="Only include messages from this month (1-12); requires year",
    )


class SearchMessagesArgs(TimeScopedArgs):
    keywords: list[str] = Field(
        ...,
        min_length=1,
        description="Keywords to search for; a message matches if it contains any of them",
    )
    limit: int | None = Field(
        None,
        ge=1,
        description=f"Maximum number of messages to return, default {DEFAULT_SEARCH_LIMIT}, "
        f"at most {MAX_SEARCH_LIMIT}",
    )

    @field_validator("keywords")
    @classmethod
    def validate_keywords(cls, v: list[str]) -> list[str]:
        keywords = [k.strip() for k in v if k and k.strip()]
        if not keywords:
            raise ValueError("At least one non-empty keyword is required")
        return keywords


class RecentMessagesArgs(TimeScopedArgs):
    limit: int | None = Field(
        None,
        ge=1,
        description=f"Maximum number of messages to return, default {DEFAULT_RECENT_LIMIT}",
    )


def _format_messages(
    result: "MessageQueryResult", time_filter: TimeFilter | None, context: ToolContext
) -> dict:
    return {
        "total": result.total,
        "returned": len(result.messages),
        "time_range": format_time_range(time_filter, context.tz),
        "messages": [
            {
                "sender": m.sender_name,
                "content": m.content,
                "time": format_timestamp(m.timestamp, context.tz),
            }
            for m in result.messages
        ],
    }


def summarize_messages(result: dict) -> str:
    time_range = result.get("time_range")
    if isinstance(time_range, dict):
        scope = f"{time_range['start']} ~ {time_range['end']}"
    else:
        scope = str(time_range)
    return f"{result.get('returned', 0)} of {result.get('total', 0)} messages ({scope})"


@tool(
    name="search_messages",
    description=(
        "Search the chat log for messages containing any of the given keywords. "
        "Use it to find discussions about a specific topic, person or phrase. "
        "Optionally restrict the search to a year or a month."
    ),
    time_scoped=True,
    summarizer=summarize_messages,
)
async def search_messages(args: SearchMessagesArgs, context: ToolContext) -> dict:
    limit = min(args.limit or DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT)
    time_filter = resolve_time_filter(args.year, args.month, context)

    result = await context.store.search_messages(
        context.session_id, args.keywords, time_filter, limit, 0
    )

    logger.info(
        f"Keyword search {args.keywords} matched {result.total} messages, "
        f"returning {len(result.messages)}"
    )
    return _format_messages(result, time_filter, context)


@tool(
    name="get_recent_messages",
    description=(
        "Get chat messages from a time period, most recent last. Use it for "
        "overview questions such as 'what did everyone talk about lately' or "
        "'what was discussed in March'. Optionally restrict to a year or a month."
    ),
    time_scoped=True,
    summarizer=summarize_messages,
)
async def get_recent_messages(args: RecentMessagesArgs, context: ToolContext) -> dict:
    limit = args.limit or DEFAULT_RECENT_LIMIT
    time_filter = resolve_time_filter(args.year, args.month, context)

    result = await context.store.get_recent_messages(
        context.session_id, time_filter, limit
    )
    return _format_messages(result, time_filter, context)
