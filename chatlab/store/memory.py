"""In-memory chat-log store, loaded programmatically or from a JSON export."""

import json
import logging
import threading
from collections import Counter
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any

from ..tools.models import TimeFilter
from .base import (
    ChatRecord,
    DailyActivity,
    HourlyActivity,
    MemberActivity,
    MessageQueryResult,
    UnknownSessionError,
    WeekdayActivity,
)

logger = logging.getLogger("chatlab.store.memory")


class InMemoryChatStore:
    """
    ChatDataStore over per-session lists of ChatRecord.

    Message queries return the latest matches in chronological order; the
    hour/weekday/day buckets are computed in ``tz`` (local time when None).

    Expected JSON export layout::

        {"session_id": "family-group",
         "messages": [{"sender_id": "u1", "sender_name": "Alice",
                       "content": "hi", "timestamp": 1700000000}]}
    """

    def __init__(
        self,
        sessions: dict[str, list[ChatRecord]] | None = None,
        tz: tzinfo | None = None,
    ):
        self.tz = tz
        self._sessions: dict[str, list[ChatRecord]] = {}
        self._lock = threading.RLock()
        for session_id, records in (sessions or {}).items():
            self.add_records(session_id, records)

    @classmethod
    def from_json_file(
        cls, path: str | Path, session_id: str | None = None, tz: tzinfo | None = None
    ) -> "InMemoryChatStore":
        """
        Load a chat export.

        Args:
            path: JSON file, either ``{"session_id", "messages"}`` or a bare
                list of messages
            session_id: Session to file the messages under; defaults to the
                file's ``session_id`` key, then the file stem
            tz: Timezone for activity buckets
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data: Any = json.load(f)

        if isinstance(data, list):
            raw_messages, file_session = data, None
        elif isinstance(data, dict):
            raw_messages, file_session = data.get("messages", []), data.get("session_id")
        else:
            raise ValueError(f"Unsupported chat export layout in {path}")

        store = cls(tz=tz)
        store.add_records(
            session_id or file_session or path.stem,
            [ChatRecord.model_validate(m) for m in raw_messages],
        )
        return store

    def add_records(self, session_id: str, records: list[ChatRecord]) -> None:
        with self._lock:
            merged = self._sessions.get(session_id, []) + list(records)
            merged.sort(key=lambda r: r.timestamp)
            self._sessions[session_id] = merged
        logger.info(f"Loaded {len(records)} messages into session '{session_id}'")

    def sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def _records(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[ChatRecord]:
        with self._lock:
            if session_id not in self._sessions:
                raise UnknownSessionError(f"Unknown chat session '{session_id}'")
            records = self._sessions[session_id]
        if time_filter is None:
            return list(records)
        return [r for r in records if time_filter.contains(r.timestamp)]

    def _local(self, record: ChatRecord) -> datetime:
        return datetime.fromtimestamp(record.timestamp, self.tz)

    async def search_messages(
        self,
        session_id: str,
        keywords: list[str],
        time_filter: TimeFilter | None,
        limit: int,
        offset: int = 0,
    ) -> MessageQueryResult:
        needles = [k.lower() for k in keywords if k and k.strip()]
        matches = [
            r
            for r in self._records(session_id, time_filter)
            if any(n in r.content.lower() for n in needles)
        ]
        # newest first for paging, returned oldest first
        page = list(reversed(matches))[offset : offset + limit]
        page.reverse()
        return MessageQueryResult(total=len(matches), messages=page)

    async def get_recent_messages(
        self, session_id: str, time_filter: TimeFilter | None, limit: int
    ) -> MessageQueryResult:
        records = self._records(session_id, time_filter)
        return MessageQueryResult(
            total=len(records), messages=records[-limit:] if limit > 0 else []
        )

    async def get_member_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[MemberActivity]:
        records = self._records(session_id, time_filter)
        counts = Counter(r.sender_id for r in records)
        names = {r.sender_id: r.sender_name for r in records}
        total = len(records)

        return [
            MemberActivity(
                member_id=member_id,
                name=names[member_id],
                message_count=count,
                percentage=round(count * 100 / total, 2),
            )
            for member_id, count in counts.most_common()
        ]

    async def get_hourly_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[HourlyActivity]:
        counts = Counter(
            self._local(r).hour for r in self._records(session_id, time_filter)
        )
        return [HourlyActivity(hour=h, message_count=counts[h]) for h in range(24)]

    async def get_weekday_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[WeekdayActivity]:
        counts = Counter(
            self._local(r).isoweekday() for r in self._records(session_id, time_filter)
        )
        return [
            WeekdayActivity(weekday=d, message_count=counts[d]) for d in range(1, 8)
        ]

    async def get_daily_activity(
        self, session_id: str, time_filter: TimeFilter | None
    ) -> list[DailyActivity]:
        counts = Counter(
            self._local(r).date().isoformat()
            for r in self._records(session_id, time_filter)
        )
        return [
            DailyActivity(date=day, message_count=counts[day]) for day in sorted(counts)
        ]
