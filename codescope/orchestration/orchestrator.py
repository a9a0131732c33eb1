"""Root controller that decomposes a task and delegates to spawned workers."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from codescope.agents.prompts import ORCHESTRATOR_PERSONA, build_orchestrator_prompt
from codescope.core.conversation import (
    ConversationLoop,
    GenerationConfig,
    LoopOutcome,
    OutcomeType,
    ReasoningEngine,
)
from codescope.core.models import AgentOutcome, ToolCallRecord, utcnow
from codescope.core.registry import AgentRegistry
from codescope.core.scheduler import Scheduler
from codescope.orchestration.manager import DEFAULT_POLL_INTERVAL, await_terminal
from codescope.tools.executor import SpawnAgentParams, SpawningToolExecutor, ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_ORCHESTRATOR_ITERATIONS = 15
DEFAULT_SPAWN_WAIT_TIMEOUT = 120.0


class OrchestratorState(str, Enum):
    IDLE = "idle"
    CONVERSING = "conversing"
    AWAITING_SUBAGENTS = "awaiting_subagents"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(slots=True)
class SpawnedAgent:
    agent_id: str
    purpose: str
    spawned_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "purpose": self.purpose,
            "spawned_at": self.spawned_at.isoformat(),
        }


@dataclass(slots=True)
class OrchestrationResult:
    """The orchestrator's own outcome plus what its sub-agents produced."""

    success: bool
    state: OrchestratorState
    outcome: LoopOutcome
    spawned_agents: List[SpawnedAgent] = field(default_factory=list)
    agent_results: List[AgentOutcome] = field(default_factory=list)
    tool_history: List[ToolCallRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def conversation_turns(self) -> int:
        return len(self.outcome.history)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "result": self.outcome.to_dict(),
            "spawned_agents": [agent.to_dict() for agent in self.spawned_agents],
            "agent_results": [outcome.to_dict() for outcome in self.agent_results],
            "orchestrator_tool_history": [call.to_dict() for call in self.tool_history],
            "conversation_turns": self.conversation_turns,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class Orchestrator:
    """
    Root agent holding the full tool set, including spawn.

    A spawn request registers the agent and hands it to the scheduler; the
    orchestrator never runs a worker itself. Once its own conversation ends
    it waits for every agent it spawned, in spawn order, under one shared
    deadline, and returns whatever each of them produced.
    """

    def __init__(
        self,
        *,
        registry: AgentRegistry,
        scheduler: Scheduler,
        engine: ReasoningEngine,
        tools: Optional[ToolExecutor] = None,
        max_iterations: int = DEFAULT_ORCHESTRATOR_ITERATIONS,
        generation: Optional[GenerationConfig] = None,
        spawn_wait_timeout: float = DEFAULT_SPAWN_WAIT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        persona: str = ORCHESTRATOR_PERSONA,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._engine = engine
        self._tools = SpawningToolExecutor(tools or ToolExecutor(), spawn=self._spawn)
        self._max_iterations = max_iterations
        self._generation = generation
        self._spawn_wait_timeout = spawn_wait_timeout
        self._poll_interval = poll_interval
        self._persona = persona
        self._state = OrchestratorState.IDLE
        self._spawned: List[SpawnedAgent] = []
        self._tool_history: List[ToolCallRecord] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def spawned_agents(self) -> List[SpawnedAgent]:
        return list(self._spawned)

    @property
    def tool_names(self) -> List[str]:
        return self._tools.names()

    async def execute(
        self,
        task: str,
        workspace: Optional[str] = None,
        *,
        wait_timeout: Optional[float] = None,
    ) -> OrchestrationResult:
        """Run one task to completion and collect every spawned agent's outcome."""
        async with self._lock:
            self._spawned = []
            self._tool_history = []
            self._state = OrchestratorState.CONVERSING
            logger.info("Orchestrating: %s (workspace=%s)", task, workspace)

            loop = ConversationLoop(
                self._engine,
                self._tools,
                max_iterations=self._max_iterations,
                generation=self._generation,
                on_tool_call=self._tool_history.append,
                label="orchestrator",
            )
            error: Optional[str] = None
            try:
                outcome = await loop.run(self._persona, build_orchestrator_prompt(task, workspace))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Orchestrator conversation failed: %s", exc)
                error = str(exc) or type(exc).__name__
                outcome = LoopOutcome(type=OutcomeType.ERROR, error=error)
            if outcome.type is OutcomeType.ERROR:
                error = outcome.error

            self._state = OrchestratorState.AWAITING_SUBAGENTS
            timeout = self._spawn_wait_timeout if wait_timeout is None else wait_timeout
            agent_results = await self.wait_for_spawned(
                [agent.agent_id for agent in self._spawned], timeout
            )

            self._state = self._final_state(outcome, agent_results)
            logger.info(
                "Orchestration finished: %s (%d/%d sub-agents succeeded)",
                self._state.value,
                sum(1 for result in agent_results if result.success),
                len(agent_results),
            )
            return OrchestrationResult(
                success=self._state is not OrchestratorState.FAILED,
                state=self._state,
                outcome=outcome,
                spawned_agents=list(self._spawned),
                agent_results=agent_results,
                tool_history=list(self._tool_history),
                error=error,
            )

    async def wait_for_spawned(self, agent_ids: Sequence[str], timeout: float) -> List[AgentOutcome]:
        """Collect an outcome for each id in order; failures never stop the rest."""
        if not agent_ids:
            return []
        logger.info("Waiting for %d spawned agent(s) to complete...", len(agent_ids))
        purposes = {agent.agent_id: agent.purpose for agent in self._spawned}
        deadline = asyncio.get_running_loop().time() + timeout
        results = []
        for agent_id in agent_ids:
            outcome = await await_terminal(
                self._registry,
                agent_id,
                deadline=deadline,
                purpose=purposes.get(agent_id),
                poll_interval=self._poll_interval,
            )
            if outcome.success:
                logger.info("%s completed", agent_id)
            else:
                logger.warning("%s: %s", agent_id, outcome.error)
            results.append(outcome)
        return results

    def _spawn(self, params: SpawnAgentParams) -> Dict[str, Any]:
        context = params.context_payload()
        agent_id = self._registry.register(params.purpose, context)
        position = self._scheduler.enqueue(agent_id, params.purpose, context)
        self._spawned.append(SpawnedAgent(agent_id=agent_id, purpose=params.purpose))
        logger.info("Spawned %s for: %s", agent_id, params.purpose)
        return {
            "agent_id": agent_id,
            "purpose": params.purpose,
            "queue_position": position,
            "message": f"Spawned {agent_id} for: {params.purpose}. Agent will execute asynchronously.",
        }

    @staticmethod
    def _final_state(outcome: LoopOutcome, agent_results: List[AgentOutcome]) -> OrchestratorState:
        if outcome.type is OutcomeType.ERROR:
            return OrchestratorState.FAILED
        if outcome.type is OutcomeType.TIMEOUT:
            return OrchestratorState.TIMED_OUT
        if any(result.timed_out for result in agent_results):
            return OrchestratorState.TIMED_OUT
        return OrchestratorState.COMPLETED
