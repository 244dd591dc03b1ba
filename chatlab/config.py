"""
ChatLab Configuration System

This module provides configuration management for the chat-log agent,
supporting multiple configuration sources (environment variables, files,
programmatic), type-safe validation, and hierarchical configuration merging.

Features:
- Pydantic-based configuration models with validation
- Environment variable support with automatic type conversion
- YAML/JSON configuration file support
- Configuration priority system (env vars > config files > defaults)
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatlab.llm.config import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, ChatOptions
from chatlab.models import AgentRunConfig

logger = logging.getLogger("chatlab.config")

ENV_PREFIX = "CHATLAB_"


class ConfigurationError(Exception):
    """Configuration-related errors."""

    pass


class LLMConfig(BaseModel):
    """Chat model configuration."""

    api_key: str = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY", ""),
        description="OpenAI API key",
    )
    model: str = Field("gpt-4o-mini", description="Model name")
    temperature: float = Field(
        DEFAULT_TEMPERATURE, ge=0.0, le=2.0, description="Sampling temperature"
    )
    max_tokens: int = Field(
        DEFAULT_MAX_TOKENS, ge=1, le=32768, description="Maximum tokens per response"
    )
    timeout: int = Field(60, ge=5, le=300, description="Request timeout in seconds")
    max_retries: int = Field(3, ge=0, le=10, description="Retries on rate limit/timeout")
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL"),
        description="Base URL for OpenAI-compatible APIs",
    )


class ToolsConfig(BaseModel):
    """Tool dispatch configuration."""

    max_workers: int = Field(
        5, ge=1, le=32, description="Maximum concurrently running tool calls"
    )
    timeout: float = Field(
        30.0, gt=0, le=300, description="Tool execution timeout in seconds"
    )


class AgentLoopConfig(BaseModel):
    """Orchestration loop configuration."""

    max_tool_rounds: int = Field(
        5, ge=0, le=50, description="Tool rounds before the forced final answer"
    )


class PromptsConfig(BaseModel):
    """Prompt configuration."""

    language: Literal["zh", "en"] = Field("zh", description="System prompt language")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        "INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )
    handlers: list[str] = Field(
        default_factory=lambda: ["console"], description="Log handlers"
    )
    file_path: Path | None = Field(
        None, description="Log file path (if file handler enabled)"
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("handlers")
    @classmethod
    def validate_handlers(cls, v: list[str]) -> list[str]:
        valid_handlers = {"console", "file"}
        for handler in v:
            if handler not in valid_handlers:
                raise ValueError(
                    f"Invalid handler: {handler}. Must be one of {valid_handlers}"
                )
        return v


class ChatLabConfig(BaseModel):
    """Complete configuration model with all subsystems."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    llm: LLMConfig = Field(default_factory=LLMConfig, description="LLM configuration")
    tools: ToolsConfig = Field(
        default_factory=ToolsConfig, description="Tools configuration"
    )
    agent: AgentLoopConfig = Field(
        default_factory=AgentLoopConfig, description="Agent loop configuration"
    )
    prompts: PromptsConfig = Field(
        default_factory=PromptsConfig, description="Prompts configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    def dict_for_container(self) -> dict[str, Any]:
        """Convert to dictionary format suitable for dependency injection container."""
        return self.model_dump()

    def run_config(self) -> AgentRunConfig:
        """Loop settings for Agent instances built from this configuration."""
        return AgentRunConfig(
            max_tool_rounds=self.agent.max_tool_rounds,
            llm_options=ChatOptions(
                temperature=self.llm.temperature, max_tokens=self.llm.max_tokens
            ),
        )

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "ChatLabConfig":
        """Create configuration from environment variables."""
        return cls(**EnvConfigSource(prefix).load())


# Configuration source system
class ConfigSource(ABC):
    """Abstract base class for configuration sources."""

    def __init__(self, required: bool = False):
        self.required = required

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load configuration from this source."""
        pass


class EnvConfigSource(ConfigSource):
    """Environment variable configuration source."""

    def __init__(self, prefix: str = ENV_PREFIX, required: bool = False):
        super().__init__(required)
        self.prefix = prefix

    def load(self) -> dict[str, Any]:
        """Load configuration from environment variables."""
        config: dict[str, Any] = {}
        for key, value in os.environ.items():
            if not key.startswith(self.prefix):
                continue

            # CHATLAB_LLM_MAX_TOKENS -> llm.max_tokens
            config_key = key[len(self.prefix) :].lower()
            nested_keys = config_key.split("_", 1)

            if len(nested_keys) == 2:
                section, field_key = nested_keys
                config.setdefault(section, {})[field_key] = _parse_env_value(value)
            else:
                config[nested_keys[0]] = _parse_env_value(value)

        return config


class FileConfigSource(ConfigSource):
    """File-based configuration source supporting YAML and JSON."""

    def __init__(self, file_path: str | Path, required: bool = False):
        super().__init__(required)
        self.file_path = Path(file_path)

    def load(self) -> dict[str, Any]:
        """Load configuration from file."""
        if not self.file_path.exists():
            if self.required:
                raise FileNotFoundError(
                    f"Required configuration file not found: {self.file_path}"
                )
            return {}

        suffix = self.file_path.suffix.lower()
        if suffix not in (".yaml", ".yml", ".json"):
            raise ConfigurationError(
                f"Unsupported configuration file format: {self.file_path.suffix}"
            )

        try:
            with open(self.file_path, encoding="utf-8") as f:
                if suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load configuration file {self.file_path}: {e}"
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {self.file_path} must contain a mapping"
            )
        return data


class DictConfigSource(ConfigSource):
    """Dictionary-based configuration source for programmatic configuration."""

    def __init__(self, config_dict: dict[str, Any], required: bool = False):
        super().__init__(required)
        self.config_dict = config_dict or {}

    def load(self) -> dict[str, Any]:
        """Load configuration from dictionary."""
        return self.config_dict.copy()


class ConfigLoader:
    """Multi-source configuration loader with priority support."""

    def __init__(self):
        self.config_sources: list[ConfigSource] = []

    def add_env_source(self, prefix: str = ENV_PREFIX) -> "ConfigLoader":
        """Add environment variable configuration source (highest priority)."""
        self.config_sources.append(EnvConfigSource(prefix))
        return self

    def add_file_source(
        self, file_path: str | Path, required: bool = False
    ) -> "ConfigLoader":
        """Add file configuration source."""
        self.config_sources.append(FileConfigSource(file_path, required))
        return self

    def add_dict_source(self, config_dict: dict[str, Any]) -> "ConfigLoader":
        """Add dictionary configuration source (lowest priority)."""
        self.config_sources.append(DictConfigSource(config_dict))
        return self

    def load(self) -> ChatLabConfig:
        """Load and merge configuration from all sources."""
        merged_config: dict[str, Any] = {}

        # Sources are applied in order, later ones override earlier ones
        for source in self.config_sources:
            try:
                source_config = source.load()
            except Exception as e:
                if source.required:
                    raise ConfigurationError(
                        f"Failed to load required configuration source: {e}"
                    ) from e
                logger.warning(
                    f"Failed to load optional configuration source, skipping: {e}"
                )
                continue
            merged_config = _deep_merge_dict(merged_config, source_config)

        try:
            return ChatLabConfig(**merged_config)
        except Exception as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e


# Utility functions
def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate Python type."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            return value


def _deep_merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dict(result[key], value)
        else:
            result[key] = value

    return result
