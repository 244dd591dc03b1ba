"""
Tests for the @tool decorator

Validates definition building, argument model inference and schema
generation.
"""

from typing import Literal

import pytest
from pydantic import BaseModel, Field, ValidationError

from chatlab.tools.decorators import (
    get_tool_spec,
    is_tool_function,
    list_tools_in_module,
    tool,
)
from chatlab.tools.builtin import messages, stats


class LookupArgs(BaseModel):
    member: str = Field(..., description="Member display name")
    limit: int | None = Field(None, ge=1, description="Maximum rows")
    mode: Literal["exact", "fuzzy"] = "exact"


class TestToolDecorator:
    """Test tool declaration"""

    def test_spec_attached_without_global_registration(self):
        @tool("lookup_member", "Look up a member of the chat")
        async def lookup_member(args: LookupArgs, context) -> dict:
            return {}

        spec = get_tool_spec(lookup_member)
        assert is_tool_function(lookup_member)
        assert spec.definition.name == "lookup_member"
        assert spec.args_model is LookupArgs
        assert spec.summarizer is None

    def test_name_and_description_default_from_function(self):
        @tool()
        def count_things(args, context):
            """Count the things that matter in a chat."""
            return 0

        definition = get_tool_spec(count_things).definition
        assert definition.name == "count_things"
        assert definition.description == "Count the things that matter in a chat."
        assert definition.parameters == {"type": "object", "properties": {}}
        assert get_tool_spec(count_things).args_model is None

    def test_schema_is_compact(self):
        @tool("lookup_member", "Look up a member of the chat")
        async def lookup_member(args: LookupArgs, context) -> dict:
            return {}

        params = get_tool_spec(lookup_member).definition.parameters

        assert params["type"] == "object"
        assert params["required"] == ["member"]
        assert "title" not in params
        assert params["properties"]["member"] == {
            "type": "string",
            "description": "Member display name",
        }
        # Optional[int] collapses to its non-null variant
        assert params["properties"]["limit"] == {
            "type": "integer",
            "minimum": 1,
            "description": "Maximum rows",
        }
        assert params["properties"]["mode"]["enum"] == ["exact", "fuzzy"]

    def test_invalid_tool_name_rejected(self):
        with pytest.raises(ValidationError):

            @tool("9lives", "Tool with an invalid name")
            def bad(args, context):
                return None

    def test_short_description_rejected(self):
        with pytest.raises(ValidationError):

            @tool("short", "tiny")
            def short(args, context):
                return None

    def test_list_tools_in_module_keeps_definition_order(self):
        assert list(list_tools_in_module(messages)) == [
            "search_messages",
            "get_recent_messages",
        ]
        assert list(list_tools_in_module(stats)) == [
            "get_member_stats",
            "get_time_stats",
        ]
