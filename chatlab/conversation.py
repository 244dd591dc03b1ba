"""
Conversation state of a single agent run.

An ordered, append-only message history. Tool results may only follow the
assistant message that requested them, and every requested call must be
answered before the conversation moves on.
"""

from collections.abc import Iterator

from chatlab.exceptions import ConversationStateError
from chatlab.llm.config import ChatMessage
from chatlab.tools.models import ToolCallRequest


class Conversation:
    """Append-only message history with tool-call/tool-result pairing enforced."""

    def __init__(self, system_prompt: str, question: str):
        self._messages: list[ChatMessage] = [
            ChatMessage.system(system_prompt),
            ChatMessage.user(question),
        ]
        # call ids of the latest assistant turn still waiting for a tool message
        self._pending: list[str] = []

    @property
    def messages(self) -> list[ChatMessage]:
        """Snapshot of the history, safe to hand to a model client."""
        return list(self._messages)

    @property
    def pending_tool_call_ids(self) -> list[str]:
        return list(self._pending)

    def _require_no_pending(self, role: str) -> None:
        if self._pending:
            raise ConversationStateError(
                f"Cannot append {role} message while tool calls are unanswered: "
                f"{', '.join(self._pending)}"
            )

    def add_user(self, content: str) -> ChatMessage:
        self._require_no_pending("user")
        message = ChatMessage.user(content)
        self._messages.append(message)
        return message

    def add_assistant(self, content: str) -> ChatMessage:
        self._require_no_pending("assistant")
        message = ChatMessage.assistant(content)
        self._messages.append(message)
        return message

    def add_tool_calls(self, tool_calls: list[ToolCallRequest]) -> ChatMessage:
        """Append an assistant turn that only carries tool requests."""
        self._require_no_pending("assistant")
        if not tool_calls:
            raise ConversationStateError("An assistant tool turn needs at least one call")

        call_ids = [call.id for call in tool_calls]
        if len(set(call_ids)) != len(call_ids):
            raise ConversationStateError(f"Duplicate tool call ids: {call_ids}")

        message = ChatMessage.assistant("", tool_calls=list(tool_calls))
        self._messages.append(message)
        self._pending = call_ids
        return message

    def add_tool_result(self, tool_call_id: str, content: str) -> ChatMessage:
        """Append the tool message answering ``tool_call_id``."""
        if tool_call_id not in self._pending:
            raise ConversationStateError(
                f"Tool result for '{tool_call_id}' does not answer a pending call "
                f"of the preceding assistant message"
            )

        message = ChatMessage.tool(tool_call_id, content)
        self._messages.append(message)
        self._pending.remove(tool_call_id)
        return message

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._messages))
