"""
Activity Statistics Tools

Member ranking and time-distribution statistics over the chat log.
"""

from typing import Literal

from pydantic import Field

from ..decorators import tool
from ..models import ToolContext
from ..time_range import format_time_range, resolve_time_filter
from .messages import TimeScopedArgs

DEFAULT_TOP_N = 10
DAILY_TREND_DAYS = 30

WEEKDAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


class MemberStatsArgs(TimeScopedArgs):
    top_n: int | None = Field(
        None, ge=1, description=f"Number of top members to return, default {DEFAULT_TOP_N}"
    )


class TimeStatsArgs(TimeScopedArgs):
    type: Literal["hourly", "weekday", "daily"] = Field(
        ...,
        description="Distribution type: hourly (by hour of day), weekday (by day "
        "of week) or daily (by date, last 30 active days)",
    )


def _format_percentage(value: float) -> str:
    return f"{value:g}%"


def summarize_member_stats(result: dict) -> str:
    top = result.get("top_members") or []
    if not top:
        return "No member activity"
    leader = top[0]
    return (
        f"{result.get('total_members', 0)} members, most active: "
        f"{leader['name']} ({leader['message_count']} messages, {leader['percentage']})"
    )


def summarize_time_stats(result: dict) -> str:
    if "peak_hour" in result:
        if result["peak_hour"] is None:
            return "No messages in range"
        return f"Peak hour {result['peak_hour']} ({result['peak_count']} messages)"
    if "peak_day" in result:
        if result["peak_day"] is None:
            return "No messages in range"
        return f"Peak day {result['peak_day']} ({result['peak_count']} messages)"
    return (
        f"{result.get('total_messages', 0)} messages over "
        f"{result.get('recent_days', 0)} days, "
        f"{result.get('average_per_day', 0)} per day"
    )


@tool(
    name="get_member_stats",
    description=(
        "Get message counts per group member, ranked from most to least active. "
        "Use it for questions like 'who talks the most' or 'who is most active'."
    ),
    time_scoped=True,
    summarizer=summarize_member_stats,
)
async def get_member_stats(args: MemberStatsArgs, context: ToolContext) -> dict:
    top_n = args.top_n or DEFAULT_TOP_N
    time_filter = resolve_time_filter(args.year, args.month, context)

    members = await context.store.get_member_activity(context.session_id, time_filter)

    return {
        "total_members": len(members),
        "time_range": format_time_range(time_filter, context.tz),
        "top_members": [
            {
                "rank": rank,
                "name": m.name,
                "message_count": m.message_count,
                "percentage": _format_percentage(m.percentage),
            }
            for rank, m in enumerate(members[:top_n], start=1)
        ],
    }


@tool(
    name="get_time_stats",
    description=(
        "Get how chat activity is distributed over time: by hour of day, by day "
        "of week, or per day for the last 30 active days. Use it for questions "
        "like 'when is the group most active' or 'what time do people usually chat'."
    ),
    time_scoped=True,
    summarizer=summarize_time_stats,
)
async def get_time_stats(args: TimeStatsArgs, context: ToolContext) -> dict:
    store = context.store
    time_filter = resolve_time_filter(args.year, args.month, context)

    if args.type == "hourly":
        hours = await store.get_hourly_activity(context.session_id, time_filter)
        peak = max(hours, key=lambda h: h.message_count, default=None)
        has_data = peak is not None and peak.message_count > 0
        return {
            "distribution": [
                {"hour": f"{h.hour}:00", "count": h.message_count} for h in hours
            ],
            "peak_hour": f"{peak.hour}:00" if has_data else None,
            "peak_count": peak.message_count if has_data else 0,
        }

    if args.type == "weekday":
        days = await store.get_weekday_activity(context.session_id, time_filter)
        peak = max(days, key=lambda d: d.message_count, default=None)
        has_data = peak is not None and peak.message_count > 0
        return {
            "distribution": [
                {"weekday": WEEKDAY_NAMES[d.weekday], "count": d.message_count}
                for d in days
            ],
            "peak_day": WEEKDAY_NAMES[peak.weekday] if has_data else None,
            "peak_count": peak.message_count if has_data else 0,
        }

    daily = await store.get_daily_activity(context.session_id, time_filter)
    recent = daily[-DAILY_TREND_DAYS:]
    total = sum(d.message_count for d in recent)
    return {
        "recent_days": len(recent),
        "total_messages": total,
        "average_per_day": round(total / len(recent)) if recent else 0,
        "trend": [{"date": d.date, "count": d.message_count} for d in recent],
    }
