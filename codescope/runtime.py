"""Application runtime composition helpers."""
from __future__ import annotations

from functools import lru_cache

from codescope.agents.worker import Worker
from codescope.config import config
from codescope.core.conversation import GenerationConfig, ReasoningEngine
from codescope.core.models import SpawnRequest
from codescope.core.registry import AgentRegistry
from codescope.core.scheduler import Scheduler
from codescope.orchestration.manager import AgentManager
from codescope.orchestration.orchestrator import Orchestrator
from codescope.services.engines import GeminiEngine, OpenAIChatEngine
from codescope.services.llm_pool import LLMPool
from codescope.tools.executor import ToolExecutor
from codescope.tools.files import builtin_tools


@lru_cache
def get_registry() -> AgentRegistry:
    return AgentRegistry()


@lru_cache
def get_llm_pool() -> LLMPool:
    pool = LLMPool()

    # Register whichever providers are configured
    if config.openai:
        pool.register_openai(config.openai.model, config.openai)
    if config.azure_openai:
        pool.register_azure_openai(config.azure_openai.deployment_name, config.azure_openai)
    if config.gemini:
        pool.register_gemini(config.gemini.model, config.gemini)

    return pool


@lru_cache
def get_engine() -> ReasoningEngine:
    if config.engine == "gemini":
        return GeminiEngine(get_llm_pool(), config.model_name)
    return OpenAIChatEngine(get_llm_pool(), config.model_name)


@lru_cache
def get_generation_config() -> GenerationConfig:
    return GenerationConfig(
        temperature=config.orchestration.temperature,
        max_tokens=config.orchestration.max_tokens,
    )


def build_tools() -> ToolExecutor:
    return ToolExecutor(builtin_tools())


def build_worker(request: SpawnRequest) -> Worker:
    return Worker(
        request.agent_id,
        request.purpose,
        request.context,
        registry=get_registry(),
        engine=get_engine(),
        tools=build_tools(),
        max_iterations=config.orchestration.agent_max_iterations,
        generation=get_generation_config(),
    )


@lru_cache
def get_scheduler() -> Scheduler:
    return Scheduler(get_registry(), build_worker, pool_size=config.orchestration.pool_size)


@lru_cache
def get_manager() -> AgentManager:
    return AgentManager(
        get_registry(),
        get_scheduler(),
        poll_interval=config.orchestration.poll_interval,
    )


def create_orchestrator() -> Orchestrator:
    """Fresh orchestrator per task, sharing the process-wide registry and scheduler."""
    return Orchestrator(
        registry=get_registry(),
        scheduler=get_scheduler(),
        engine=get_engine(),
        tools=build_tools(),
        max_iterations=config.orchestration.orchestrator_max_iterations,
        generation=get_generation_config(),
        spawn_wait_timeout=config.orchestration.spawn_wait_timeout,
        poll_interval=config.orchestration.poll_interval,
    )
