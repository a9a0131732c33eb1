"""Configuration management for the analysis engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI (or OpenAI-compatible) API configuration."""

    api_key: str
    base_url: Optional[str] = None
    model: str = "gpt-4o"
    max_concurrent: int = 50


@dataclass(frozen=True)
class AzureOpenAIConfig:
    """Azure OpenAI service configuration."""

    api_key: str
    endpoint: str
    api_version: str = "2024-02-15-preview"
    deployment_name: str = "gpt-4o"
    max_concurrent: int = 50


@dataclass(frozen=True)
class GeminiConfig:
    """Google Gemini API configuration."""

    api_key: str
    model: str = "gemini-2.0-flash-exp"
    max_concurrent: int = 50


@dataclass(frozen=True)
class OrchestrationConfig:
    """Loop bounds, polling and scheduling knobs."""

    orchestrator_max_iterations: int = 15
    agent_max_iterations: int = 10
    temperature: float = 0.7
    max_tokens: int = 8192
    poll_interval: float = 0.5
    spawn_wait_timeout: float = 120.0
    agent_wait_timeout: float = 300.0
    pool_size: int = 1

    @classmethod
    def from_env(cls) -> OrchestrationConfig:
        return cls(
            orchestrator_max_iterations=int(os.getenv("ORCHESTRATOR_MAX_ITERATIONS", "15")),
            agent_max_iterations=int(os.getenv("AGENT_MAX_ITERATIONS", "10")),
            temperature=float(os.getenv("ENGINE_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("ENGINE_MAX_TOKENS", "8192")),
            poll_interval=float(os.getenv("AGENT_POLL_INTERVAL", "0.5")),
            spawn_wait_timeout=float(os.getenv("SPAWN_WAIT_TIMEOUT", "120")),
            agent_wait_timeout=float(os.getenv("AGENT_WAIT_TIMEOUT", "300")),
            pool_size=int(os.getenv("SCHEDULER_POOL_SIZE", "1")),
        )


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    engine: str = "openai"
    openai: Optional[OpenAIConfig] = None
    azure_openai: Optional[AzureOpenAIConfig] = None
    gemini: Optional[GeminiConfig] = None
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    environment: str = "development"

    @property
    def model_name(self) -> str:
        """Name the active model is registered under in the LLM pool."""
        if self.engine == "azure" and self.azure_openai:
            return self.azure_openai.deployment_name
        if self.engine == "gemini":
            return self.gemini.model if self.gemini else GeminiConfig.model
        if self.openai:
            return self.openai.model
        return "gpt-4o"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        openai_key = os.getenv("OPENAI_API_KEY")
        openai_config = None
        if openai_key:
            openai_config = OpenAIConfig(
                api_key=openai_key,
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                model=os.getenv("OPENAI_MODEL", "gpt-4o"),
                max_concurrent=int(os.getenv("OPENAI_MAX_CONCURRENT", "50")),
            )

        azure_key = os.getenv("AZURE_OPENAI_KEY")
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        azure_config = None
        if azure_key and azure_endpoint:
            azure_config = AzureOpenAIConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                deployment_name=os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o"),
                max_concurrent=int(os.getenv("AZURE_OPENAI_MAX_CONCURRENT", "50")),
            )

        gemini_key = os.getenv("GEMINI_API_KEY")
        gemini_config = None
        if gemini_key:
            gemini_config = GeminiConfig(
                api_key=gemini_key,
                model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash-exp"),
                max_concurrent=int(os.getenv("GEMINI_MAX_CONCURRENT", "50")),
            )

        return cls(
            engine=os.getenv("ANALYSIS_ENGINE", "openai").lower(),
            openai=openai_config,
            azure_openai=azure_config,
            gemini=gemini_config,
            orchestration=OrchestrationConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR") or None,
            environment=os.getenv("ENVIRONMENT", "development"),
        )


# Global config instance
config = Config.from_env()
