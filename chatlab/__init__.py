"""
ChatLab - question answering over imported chat logs.

A bounded tool-calling agent: the model is given read-only query tools over a
chat-log data store and answers questions grounded in what the tools return,
either as one buffered result or as a cancellable stream of events.

Quick start:
    from chatlab import Agent, InMemoryChatStore, OpenAIClient, OpenAIConfig
    from chatlab import ToolContext, create_default_registry

    store = InMemoryChatStore.from_json_file("export.json", session_id="group")
    context = ToolContext(session_id="group", store=store)
    agent = Agent(context, OpenAIClient(OpenAIConfig()), create_default_registry())
    result = await agent.execute("谁最活跃？")
"""

from chatlab.agent import (
    Agent,
    AgentEventStream,
    AgentRunState,
    CancellationToken,
    run_agent,
    run_agent_stream,
)
from chatlab.config import ChatLabConfig, ConfigLoader, ConfigurationError
from chatlab.conversation import Conversation
from chatlab.exceptions import (
    AgentError,
    AgentException,
    AgentExecutionError,
    ConversationStateError,
)
from chatlab.llm import ChatModelClient, OpenAIClient, OpenAIConfig
from chatlab.models import AgentResult, AgentRunConfig, AgentStreamChunk
from chatlab.store import ChatDataStore, ChatRecord, InMemoryChatStore
from chatlab.tools import (
    TimeFilter,
    ToolContext,
    ToolExecutor,
    ToolRegistry,
    create_default_registry,
    tool,
)

__version__ = "0.1.0"

__all__ = [
    # Agent
    "Agent",
    "AgentEventStream",
    "AgentRunState",
    "CancellationToken",
    "Conversation",
    "run_agent",
    "run_agent_stream",
    # Models
    "AgentResult",
    "AgentRunConfig",
    "AgentStreamChunk",
    # Tools
    "TimeFilter",
    "ToolContext",
    "ToolExecutor",
    "ToolRegistry",
    "create_default_registry",
    "tool",
    # Collaborators
    "ChatModelClient",
    "OpenAIClient",
    "OpenAIConfig",
    "ChatDataStore",
    "ChatRecord",
    "InMemoryChatStore",
    # Configuration
    "ChatLabConfig",
    "ConfigLoader",
    "ConfigurationError",
    # Exceptions
    "AgentException",
    "AgentError",
    "AgentExecutionError",
    "ConversationStateError",
]
