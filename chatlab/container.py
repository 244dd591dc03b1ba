"""
ChatLab Dependency Injection Container

This module provides the AgentContainer, a dependency_injector container that
wires the chat model client, data store, tool registry, tool executor and
agent factory from a ChatLabConfig.

Features:
- Configuration-driven service creation
- Overridable data store and model client providers (tests, custom backends)
- Logging setup from LoggingConfig
"""

import logging
from pathlib import Path
from typing import Any

from dependency_injector import containers, providers

from chatlab.agent import Agent
from chatlab.config import (
    ChatLabConfig,
    ConfigLoader,
    ConfigurationError,
    LoggingConfig,
    _deep_merge_dict,
)
from chatlab.llm.client import OpenAIClient
from chatlab.llm.config import ChatOptions, OpenAIConfig
from chatlab.models import AgentRunConfig
from chatlab.store.memory import InMemoryChatStore
from chatlab.tools.builtin import create_default_registry
from chatlab.tools.executor import ToolExecutor
from chatlab.tools.models import ToolContext

logger = logging.getLogger("chatlab.container")

DEFAULT_CONFIG_FILES = (
    "chatlab.yaml",
    "chatlab.yml",
    "chatlab.json",
    ".chatlab/config.yaml",
    ".chatlab/config.yml",
    ".chatlab/config.json",
)


class AgentContainer(containers.DeclarativeContainer):
    """
    Dependency injection container for the chat-log agent.

    Usage:
        container = ContainerFactory.create_container(config_file="chatlab.yaml")
        container.data_store.override(providers.Object(store))
        context = container.tool_context(session_id="family-group")
        agent = container.agent_factory(context=context)
    """

    # Configuration provider - drives all other service configuration
    config = providers.Configuration()

    # === Chat Model ===

    llm_config = providers.Singleton(
        OpenAIConfig,
        api_key=config.llm.api_key,
        model=config.llm.model,
        base_url=config.llm.base_url,
        timeout=config.llm.timeout,
        max_retries=config.llm.max_retries,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )

    llm_client = providers.Singleton(OpenAIClient, config=llm_config)

    # === Data and Tools ===

    data_store = providers.Singleton(InMemoryChatStore)

    tool_registry = providers.Singleton(create_default_registry)

    tool_executor = providers.Singleton(
        ToolExecutor,
        registry=tool_registry,
        max_workers=config.tools.max_workers,
        default_timeout=config.tools.timeout,
    )

    # === Agent ===

    run_config = providers.Singleton(
        AgentRunConfig,
        max_tool_rounds=config.agent.max_tool_rounds,
        llm_options=providers.Factory(
            ChatOptions,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
        ),
    )

    tool_context = providers.Factory(ToolContext, store=data_store)

    agent_factory = providers.Factory(
        Agent,
        client=llm_client,
        registry=tool_registry,
        executor=tool_executor,
        config=run_config,
        prompt_language=config.prompts.language,
    )


def configure_logging(log_config: LoggingConfig) -> logging.Logger:
    """
    Install handlers on the ``chatlab`` logger according to ``log_config``.

    Existing handlers on that logger are replaced.
    """
    chatlab_logger = logging.getLogger("chatlab")
    chatlab_logger.setLevel(getattr(logging, log_config.level))

    for handler in list(chatlab_logger.handlers):
        chatlab_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_config.format)

    if "console" in log_config.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        chatlab_logger.addHandler(console_handler)

    if "file" in log_config.handlers:
        if log_config.file_path is None:
            raise ConfigurationError("file_path is required for the file log handler")
        log_config.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_config.file_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        chatlab_logger.addHandler(file_handler)

    return chatlab_logger


class ContainerFactory:
    """
    Factory for creating AgentContainer instances.

    Configuration priority: keyword overrides < configuration file <
    ``CHATLAB_*`` environment variables.
    """

    @classmethod
    def create_container(
        cls,
        config: ChatLabConfig | None = None,
        config_file: str | Path | None = None,
        **kwargs,
    ) -> AgentContainer:
        """
        Create a new AgentContainer instance with the specified configuration.

        Args:
            config: Pre-built ChatLabConfig instance
            config_file: Path to configuration file
            **kwargs: Flat configuration overrides, e.g. ``llm_model="gpt-4o"``

        Returns:
            Configured AgentContainer instance

        Raises:
            ConfigurationError: If configuration loading or validation fails
        """
        try:
            if config is None:
                config = cls._load_config(config_file, **kwargs)

            container = AgentContainer()
            container.config.from_dict(config.dict_for_container())

            configure_logging(config.logging)

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to create AgentContainer: {e}")
            raise ConfigurationError(f"Container creation failed: {e}") from e

        logger.info("Successfully created AgentContainer")
        return container

    @classmethod
    def create_test_container(cls, **config_overrides) -> AgentContainer:
        """
        Create a container configured for testing with sensible test defaults.

        Environment variables and configuration files are ignored.
        """
        test_defaults = {
            "llm": {
                "api_key": "sk-test-key-for-testing",
                "model": "gpt-4o-mini",
                "temperature": 0.0,
                "max_tokens": 256,
                "timeout": 10,
                "max_retries": 0,
            },
            "logging": {"level": "DEBUG", "handlers": []},
        }

        nested_overrides = cls._convert_flat_config(config_overrides)
        merged_config = _deep_merge_dict(test_defaults, nested_overrides)
        try:
            config = ChatLabConfig(**merged_config)
        except ValueError as e:
            raise ConfigurationError(f"Invalid test configuration: {e}") from e
        return cls.create_container(config=config)

    @classmethod
    def _load_config(
        cls, config_file: str | Path | None = None, **kwargs
    ) -> ChatLabConfig:
        """Load configuration from multiple sources with proper priority."""
        loader = ConfigLoader()

        if kwargs:
            loader.add_dict_source(cls._convert_flat_config(kwargs))

        if config_file:
            loader.add_file_source(config_file, required=True)
        else:
            for file_path in DEFAULT_CONFIG_FILES:
                if Path(file_path).exists():
                    loader.add_file_source(file_path)
                    break

        loader.add_env_source()

        return loader.load()

    @staticmethod
    def _convert_flat_config(flat_config: dict[str, Any]) -> dict[str, Any]:
        """Convert flat configuration keys (llm_model) to nested structure (llm.model)."""
        nested: dict[str, Any] = {}
        for key, value in flat_config.items():
            if "_" in key:
                section, field = key.split("_", 1)
                nested.setdefault(section, {})[field] = value
            else:
                nested[key] = value
        return nested
