"""Bounded tool-calling conversation protocol shared by the orchestrator and workers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from codescope.core.errors import EngineError, IterationLimitExceeded
from codescope.core.models import (
    ToolCallRecord,
    ToolDeclaration,
    ToolInvocation,
    ToolResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling settings forwarded to the reasoning engine."""

    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = 8192


@dataclass(slots=True)
class Turn:
    """One entry of a conversation transcript."""

    role: str
    content: Optional[str] = None
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    tool_result: Optional[ToolResult] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_invocations:
            data["tool_invocations"] = [call.to_dict() for call in self.tool_invocations]
        if self.tool_result is not None:
            data["tool_call_id"] = self.tool_call_id
            data["tool_result"] = self.tool_result.to_dict()
        return data


@dataclass(slots=True)
class EngineReply:
    """Either a final message or a batch of tool invocations."""

    text: Optional[str] = None
    tool_invocations: List[ToolInvocation] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_invocations

    @property
    def is_empty(self) -> bool:
        return not self.tool_invocations and not (self.text or "").strip()


class ReasoningEngine(Protocol):
    """Provider-neutral boundary to the LLM. One adapter per provider."""

    async def generate(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolDeclaration],
        config: GenerationConfig,
    ) -> EngineReply:
        ...


class ToolProvider(Protocol):
    def declarations(self) -> List[ToolDeclaration]:
        ...

    def validate(self, name: str, params: Optional[Dict[str, Any]]) -> Any:
        ...

    async def execute(self, name: str, params: Optional[Dict[str, Any]]) -> ToolResult:
        ...


class OutcomeType(str, Enum):
    COMPLETION = "completion"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(slots=True)
class LoopOutcome:
    """Terminal result of a conversation loop run."""

    type: OutcomeType
    message: Optional[str] = None
    iterations: int = 0
    tool_call_count: int = 0
    error: Optional[str] = None
    history: List[Turn] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.type is not OutcomeType.ERROR

    def to_dict(self, *, include_history: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "message": self.message,
            "iterations": self.iterations,
            "tool_call_count": self.tool_call_count,
        }
        if self.error is not None:
            data["error"] = self.error
        if include_history or self.type is OutcomeType.TIMEOUT:
            data["partial_history"] = [turn.to_dict() for turn in self.history]
        return data


class ConversationState:
    """Private transcript of a single loop run."""

    def __init__(self, system_prompt: str, user_prompt: str) -> None:
        self.turns: List[Turn] = [
            Turn(role="system", content=system_prompt),
            Turn(role="user", content=user_prompt),
        ]

    def add_reply(self, reply: EngineReply) -> None:
        self.turns.append(
            Turn(role="assistant", content=reply.text, tool_invocations=list(reply.tool_invocations))
        )

    def add_tool_result(self, invocation: ToolInvocation, result: ToolResult) -> None:
        self.turns.append(
            Turn(
                role="tool",
                content=result.to_json(),
                tool_call_id=invocation.call_id,
                tool_result=result,
            )
        )

    def __len__(self) -> int:
        return len(self.turns)


ToolCallListener = Callable[[ToolCallRecord], None]


class ConversationLoop:
    """
    Drive request/response exchanges with the reasoning engine.

    Each iteration sends the whole transcript plus tool declarations. A reply
    without tool invocations ends the run; otherwise every invocation is
    validated and executed in the order the engine returned them, and all
    results are appended before the engine is called again. The run stops
    after ``max_iterations`` tool rounds with a timeout outcome.
    """

    def __init__(
        self,
        engine: ReasoningEngine,
        tools: ToolProvider,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        generation: Optional[GenerationConfig] = None,
        on_tool_call: Optional[ToolCallListener] = None,
        label: str = "agent",
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._engine = engine
        self._tools = tools
        self._max_iterations = max_iterations
        self._generation = generation or GenerationConfig()
        self._on_tool_call = on_tool_call
        self._label = label
        self._tool_call_count = 0

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    async def run(self, system_prompt: str, user_prompt: str) -> LoopOutcome:
        state = ConversationState(system_prompt, user_prompt)
        declarations = self._tools.declarations()
        self._tool_call_count = 0
        iteration = 0

        while iteration < self._max_iterations:
            try:
                reply = await self._engine.generate(list(state.turns), declarations, self._generation)
            except EngineError as exc:
                logger.warning("[%s] Reasoning engine error: %s", self._label, exc)
                return self._outcome(OutcomeType.ERROR, state, iteration, error=str(exc))

            if reply is None or reply.is_empty:
                logger.warning("[%s] Empty response from reasoning engine", self._label)
                return self._outcome(
                    OutcomeType.ERROR, state, iteration, error="No response from model"
                )

            state.add_reply(reply)
            if reply.is_final:
                logger.info("[%s] No more tool calls. Task complete.", self._label)
                return self._outcome(OutcomeType.COMPLETION, state, iteration, message=reply.text)

            logger.info(
                "[%s] Tool calls in iteration %d: %d",
                self._label,
                iteration + 1,
                len(reply.tool_invocations),
            )
            for invocation in reply.tool_invocations:
                result = await self._dispatch(invocation)
                state.add_tool_result(invocation, result)

            iteration += 1

        limit = IterationLimitExceeded(self._max_iterations)
        logger.info("[%s] %s. Stopping.", self._label, limit)
        return self._outcome(OutcomeType.TIMEOUT, state, iteration, message=str(limit))

    async def _dispatch(self, invocation: ToolInvocation) -> ToolResult:
        name = invocation.name
        if invocation.parse_error is not None:
            error = f"Malformed arguments for {name}: {invocation.parse_error}"
            logger.info("[%s] %s", self._label, error)
            return ToolResult.failure(name, error, errors=[error], call_id=invocation.call_id)

        report = self._tools.validate(name, invocation.arguments)
        if not report.valid:
            logger.info("[%s] Validation failed for %s: %s", self._label, name, ", ".join(report.errors))
            return ToolResult.failure(
                name, "; ".join(report.errors), errors=report.errors, call_id=invocation.call_id
            )

        logger.debug("[%s] Calling %s(%s)", self._label, name, invocation.arguments)
        result = await self._tools.execute(name, invocation.arguments)
        result.call_id = invocation.call_id
        logger.debug("[%s] %s -> %s", self._label, name, "ok" if result.success else result.error)

        self._tool_call_count += 1
        if self._on_tool_call is not None:
            self._on_tool_call(
                ToolCallRecord(tool=name, params=dict(invocation.arguments), result=result)
            )
        return result

    def _outcome(
        self,
        kind: OutcomeType,
        state: ConversationState,
        iterations: int,
        *,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ) -> LoopOutcome:
        return LoopOutcome(
            type=kind,
            message=message,
            iterations=iterations,
            tool_call_count=self._tool_call_count,
            error=error,
            history=list(state.turns),
        )
