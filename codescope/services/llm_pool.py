"""LLM client pool for shared model access with concurrency control."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Union

from google import genai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from codescope.config import AzureOpenAIConfig, GeminiConfig, OpenAIConfig

ModelConfig = Union[OpenAIConfig, AzureOpenAIConfig, GeminiConfig]


class LLMPool:
    """Manages shared LLM clients with concurrency limiting."""

    def __init__(self) -> None:
        self._configs: Dict[str, ModelConfig] = {}
        self._clients: Dict[str, Any] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def register_openai(self, name: str, config: OpenAIConfig) -> None:
        """Register an OpenAI (or compatible) model configuration."""
        self._register(name, config)

    def register_azure_openai(self, name: str, config: AzureOpenAIConfig) -> None:
        """Register an Azure OpenAI model configuration."""
        self._register(name, config)

    def register_gemini(self, name: str, config: GeminiConfig) -> None:
        """Register a Google Gemini model configuration."""
        self._register(name, config)

    def register_client(self, name: str, client: Any, max_concurrent: int = 50) -> None:
        """Register an already-built client."""
        self._clients[name] = client
        self._semaphores[name] = asyncio.Semaphore(max_concurrent)

    def __contains__(self, name: object) -> bool:
        return name in self._semaphores

    @asynccontextmanager
    async def acquire(self, model_name: str) -> AsyncIterator[Any]:
        """Acquire access to a model client with concurrency control."""
        if model_name not in self._semaphores:
            raise KeyError(f"Model '{model_name}' not registered in LLM pool")

        semaphore = self._semaphores[model_name]
        await semaphore.acquire()
        try:
            # Lazy initialization on first use
            if model_name not in self._clients:
                self._clients[model_name] = self._build_client(self._configs[model_name])
            yield self._clients[model_name]
        finally:
            semaphore.release()

    def _register(self, name: str, config: ModelConfig) -> None:
        self._configs[name] = config
        self._clients.pop(name, None)
        self._semaphores[name] = asyncio.Semaphore(config.max_concurrent)

    @staticmethod
    def _build_client(config: ModelConfig) -> Any:
        if isinstance(config, GeminiConfig):
            return genai.Client(api_key=config.api_key)
        if isinstance(config, AzureOpenAIConfig):
            return AsyncAzureOpenAI(
                api_key=config.api_key,
                api_version=config.api_version,
                azure_endpoint=config.endpoint,
            )
        return AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)
