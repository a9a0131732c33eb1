"""Worker agent executing one delegated sub-task."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from codescope.agents.prompts import WORKER_KICKOFF, WORKER_PERSONA, build_worker_prompt
from codescope.core.conversation import (
    ConversationLoop,
    DEFAULT_MAX_ITERATIONS,
    GenerationConfig,
    OutcomeType,
    ReasoningEngine,
)
from codescope.core.errors import AgentNotFound, InvalidTransition
from codescope.core.models import ToolCallRecord
from codescope.core.registry import AgentRegistry
from codescope.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerReport:
    """Envelope returned by Worker.execute."""

    agent_id: str
    purpose: str
    success: bool
    result: Any = None
    error: Optional[str] = None
    tool_call_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "agent_id": self.agent_id,
            "purpose": self.purpose,
            "tool_call_count": self.tool_call_count,
        }
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
        return data


class Worker:
    """
    Focused agent spawned by the orchestrator.

    A worker only ever holds a plain ToolExecutor, which cannot carry the
    spawn tool, so sub-agents have no way to spawn further agents. Every
    tool call is mirrored into the registry as it happens.
    """

    def __init__(
        self,
        agent_id: str,
        purpose: str,
        context: Optional[Dict[str, Any]] = None,
        *,
        registry: AgentRegistry,
        engine: ReasoningEngine,
        tools: ToolExecutor,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        generation: Optional[GenerationConfig] = None,
        persona: str = WORKER_PERSONA,
    ) -> None:
        if not isinstance(tools, ToolExecutor):
            raise TypeError("Workers require a plain ToolExecutor")
        self.agent_id = agent_id
        self.purpose = purpose
        self.context = dict(context or {})
        self._registry = registry
        self._engine = engine
        self._tools = tools
        self._max_iterations = max_iterations
        self._generation = generation
        self._persona = persona
        self._tool_calls: List[ToolCallRecord] = []

    @property
    def tool_names(self) -> List[str]:
        return self._tools.names()

    @property
    def tool_calls(self) -> List[ToolCallRecord]:
        return list(self._tool_calls)

    def system_prompt(self) -> str:
        return build_worker_prompt(self._persona, self.agent_id, self.purpose, self.context)

    async def execute(self) -> WorkerReport:
        logger.info("[%s] Starting execution. Purpose: %s", self.agent_id, self.purpose)
        self._registry.mark_running(self.agent_id)

        loop = ConversationLoop(
            self._engine,
            self._tools,
            max_iterations=self._max_iterations,
            generation=self._generation,
            on_tool_call=self._mirror,
            label=self.agent_id,
        )
        try:
            outcome = await loop.run(self.system_prompt(), WORKER_KICKOFF)
        except Exception as exc:  # noqa: BLE001
            logger.exception("[%s] Failed with error: %s", self.agent_id, exc)
            return self._fail(str(exc) or type(exc).__name__)

        if outcome.type is OutcomeType.ERROR:
            return self._fail(outcome.error or "Reasoning engine error")

        result = outcome.to_dict()
        try:
            self._registry.complete(self.agent_id, result)
        except (AgentNotFound, InvalidTransition) as exc:
            logger.warning("[%s] Could not record completion: %s", self.agent_id, exc)
        logger.info(
            "[%s] Completed (%s). Tool calls made: %d",
            self.agent_id,
            outcome.type.value,
            len(self._tool_calls),
        )
        return WorkerReport(
            agent_id=self.agent_id,
            purpose=self.purpose,
            success=True,
            result=result,
            tool_call_count=len(self._tool_calls),
        )

    def _fail(self, message: str) -> WorkerReport:
        try:
            self._registry.fail(self.agent_id, message)
        except (AgentNotFound, InvalidTransition) as exc:
            logger.warning("[%s] Could not record failure: %s", self.agent_id, exc)
        return WorkerReport(
            agent_id=self.agent_id,
            purpose=self.purpose,
            success=False,
            error=message,
            tool_call_count=len(self._tool_calls),
        )

    def _mirror(self, call: ToolCallRecord) -> None:
        self._tool_calls.append(call)
        try:
            self._registry.record_tool_call(self.agent_id, call)
        except AgentNotFound:
            logger.warning("[%s] Record vanished; tool call %s not mirrored", self.agent_id, call.tool)
