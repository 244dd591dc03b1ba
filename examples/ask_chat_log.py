#!/usr/bin/env python3
"""
ChatLab - Asking Questions About a Chat Export

Loads a JSON chat export, wires the agent through the container and answers a
question either as one buffered result or as a stream of events.

Usage:
    export OPENAI_API_KEY=sk-...
    python examples/ask_chat_log.py "谁最活跃？"
    python examples/ask_chat_log.py --stream "What did we talk about in February 2024?"
"""

import argparse
import asyncio
from pathlib import Path

from dependency_injector import providers

from chatlab import AgentStreamChunk, InMemoryChatStore
from chatlab.container import ContainerFactory

DEFAULT_EXPORT = Path(__file__).with_name("family_group.json")


def render(chunk: AgentStreamChunk) -> None:
    if chunk.type == "content":
        print(chunk.content, end="", flush=True)
    elif chunk.type == "tool_start":
        print(f"\n[tool] {chunk.tool_name} {chunk.tool_params}")
    elif chunk.type == "tool_result":
        print(f"[tool] {chunk.summary}")
    elif chunk.type == "error":
        print(f"\n[error] {chunk.error}")
    elif chunk.type == "done":
        print()


async def main(question: str, export: Path, stream: bool, language: str) -> None:
    store = InMemoryChatStore.from_json_file(export)
    session_id = store.sessions()[0]

    container = ContainerFactory.create_container(prompts_language=language)
    container.data_store.override(providers.Object(store))

    context = container.tool_context(session_id=session_id)
    agent = container.agent_factory(context=context)

    async with container.llm_client():
        if stream:
            result = await agent.execute_stream(question, render)
        else:
            result = await agent.execute(question)
            print(result.content)

    print(f"\ntools used: {result.tools_used} ({result.tool_rounds} rounds)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ask a question about a chat export")
    parser.add_argument("question")
    parser.add_argument("--export", type=Path, default=DEFAULT_EXPORT)
    parser.add_argument("--stream", action="store_true")
    parser.add_argument("--language", choices=["zh", "en"], default="zh")
    args = parser.parse_args()

    asyncio.run(main(args.question, args.export, args.stream, args.language))
