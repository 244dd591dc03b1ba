"""
Tests for Conversation history invariants
"""

import pytest

from chatlab.conversation import Conversation
from chatlab.exceptions import ConversationStateError
from chatlab.tools.models import ToolCallRequest


def _call(call_id: str, name: str = "get_member_stats") -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments="{}")


class TestConversation:
    """Test message ordering and tool pairing"""

    def setup_method(self):
        self.conversation = Conversation("system prompt", "谁最活跃？")

    def test_starts_with_system_and_question(self):
        roles = [m.role for m in self.conversation]

        assert roles == ["system", "user"]
        assert self.conversation.messages[1].content == "谁最活跃？"
        assert len(self.conversation) == 2

    def test_messages_is_a_snapshot(self):
        snapshot = self.conversation.messages
        snapshot.clear()

        assert len(self.conversation) == 2

    def test_tool_round(self):
        calls = [_call("a"), _call("b", "search_messages")]
        assistant = self.conversation.add_tool_calls(calls)

        assert assistant.role == "assistant"
        assert assistant.content == ""
        assert [c.id for c in assistant.tool_calls] == ["a", "b"]
        assert self.conversation.pending_tool_call_ids == ["a", "b"]

        self.conversation.add_tool_result("b", "{}")
        self.conversation.add_tool_result("a", "Error: boom")

        assert self.conversation.pending_tool_call_ids == []
        assert [m.tool_call_id for m in self.conversation.messages[3:]] == ["b", "a"]

    def test_unanswered_calls_block_new_turns(self):
        self.conversation.add_tool_calls([_call("a")])

        with pytest.raises(ConversationStateError, match="unanswered"):
            self.conversation.add_user("next question")
        with pytest.raises(ConversationStateError):
            self.conversation.add_assistant("answer")
        with pytest.raises(ConversationStateError):
            self.conversation.add_tool_calls([_call("b")])

    def test_tool_result_must_answer_pending_call(self):
        with pytest.raises(ConversationStateError):
            self.conversation.add_tool_result("ghost", "{}")

        self.conversation.add_tool_calls([_call("a")])
        self.conversation.add_tool_result("a", "{}")

        with pytest.raises(ConversationStateError):
            self.conversation.add_tool_result("a", "{}")

    def test_empty_and_duplicate_calls_rejected(self):
        with pytest.raises(ConversationStateError):
            self.conversation.add_tool_calls([])
        with pytest.raises(ConversationStateError, match="Duplicate"):
            self.conversation.add_tool_calls([_call("a"), _call("a")])

        assert len(self.conversation) == 2

    def test_openai_rendering(self):
        self.conversation.add_tool_calls([_call("a")])
        self.conversation.add_tool_result("a", '{"total": 1}')

        assistant, tool_message = [m.to_openai() for m in self.conversation][2:]

        assert assistant["tool_calls"][0] == {
            "id": "a",
            "type": "function",
            "function": {"name": "get_member_stats", "arguments": "{}"},
        }
        assert tool_message == {
            "role": "tool",
            "content": '{"total": 1}',
            "tool_call_id": "a",
        }
