"""
Built-in Chat Log Query Tools

The read-only query tools advertised to the model by default:

- search_messages: keyword search
- get_recent_messages: messages from a time period
- get_member_stats: member activity ranking
- get_time_stats: hourly / weekday / daily distribution
"""

from ..registry import ToolRegistry
from . import messages, stats


def register_builtin_tools(registry: ToolRegistry, *, replace: bool = False) -> int:
    """Register all built-in tools into ``registry``; returns how many."""
    count = registry.register_module(messages, replace=replace)
    count += registry.register_module(stats, replace=replace)
    return count


def create_default_registry() -> ToolRegistry:
    """Create a registry holding exactly the built-in tools."""
    registry = ToolRegistry()
    register_builtin_tools(registry)
    return registry


__all__ = ["create_default_registry", "register_builtin_tools"]
