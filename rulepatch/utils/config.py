"""Configuration management for rulepatch."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_CONFIG_FILE = ".rulepatch.yaml"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Constructed once at startup and passed explicitly to providers and the
    review pool. Nothing below the CLI reads the process environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="RULEPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider configuration
    provider: str = Field(default="openai", description="Provider backend (openai, anthropic, litellm, claudecode, codex)")
    model: str | None = Field(default=None, description="Model override; each provider has its own default")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="LLM temperature")
    max_tokens: int = Field(default=8192, gt=0, description="Maximum tokens for LLM response")
    request_timeout: float = Field(default=600.0, gt=0, description="Per-call timeout in seconds")
    num_retries: int = Field(default=0, ge=0, description="Retries LiteLLM performs on transient failures")

    # API keys
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    api_base: str | None = Field(default=None, description="Custom API base URL")

    # Paths, relative to the project root
    rules_dir: str = Field(default=".cursor/rules", description="Directory holding rule documents")
    patch_dir: str = Field(default=".rulepatch/patches", description="Directory receiving patch files")
    ignore_file: str = Field(default=".rulepatchignore", description="Ignore file used by file discovery")
    vcs_ignore_file: str = Field(default=".gitignore", description="Ignore file the patch directory is added to")

    # Review pool
    workers: int = Field(default=10, gt=0, description="Number of concurrent review workers")
    enable_tools: bool = Field(default=False, description="Let the model call load_file/download_file")
    max_tool_rounds: int = Field(default=8, gt=0, description="Maximum tool-calling rounds per file")
    system_prompt: str | None = Field(default=None, description="Replacement for the default review preamble")

    def get_rules_path(self, base_path: Path | None = None) -> Path:
        """Get the full path to the rules directory."""
        if base_path is None:
            base_path = Path.cwd()
        return base_path / self.rules_dir


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_settings(env_file: Path | str | None = None) -> Settings:
    """Build settings from the environment and an explicit .env file."""
    if env_file is None:
        return get_settings()
    return Settings(_env_file=str(env_file))


def load_project_config(project_path: Path | None = None) -> dict[str, Any]:
    """Load project-specific configuration from .rulepatch.yaml."""
    if project_path is None:
        project_path = Path.cwd()

    config_path = project_path / PROJECT_CONFIG_FILE

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        return {}

    return config


def merge_settings(base: Settings, project_config: dict[str, Any]) -> Settings:
    """Merge project config into base settings."""
    if not project_config:
        return base

    merged_data = base.model_dump()
    for key, value in project_config.items():
        if key in merged_data and value is not None:
            merged_data[key] = value

    return Settings(**merged_data)


def get_effective_settings(
    project_path: Path | None = None,
    base: Settings | None = None,
) -> Settings:
    """Get settings with project-specific overrides applied."""
    if base is None:
        base = get_settings()
    project_config = load_project_config(project_path)
    return merge_settings(base, project_config)
