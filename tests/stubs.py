"""In-process reasoning engine stubs used across the test suite."""
from __future__ import annotations

import asyncio
import itertools
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from codescope.core.conversation import EngineReply, GenerationConfig, Turn
from codescope.core.models import ToolDeclaration, ToolInvocation

_call_ids = itertools.count(1)

Scripted = Union[EngineReply, BaseException]


def call(name: str, **arguments: Any) -> ToolInvocation:
    return ToolInvocation(call_id=f"call_{next(_call_ids)}", name=name, arguments=arguments)


def tools(*invocations: ToolInvocation) -> EngineReply:
    return EngineReply(tool_invocations=list(invocations))


def final(text: str) -> EngineReply:
    return EngineReply(text=text)


class ScriptedEngine:
    """Replays a fixed list of replies; falls back to a final answer once exhausted."""

    def __init__(self, replies: Iterable[Scripted] = (), *, fallback: str = "done") -> None:
        self._replies: List[Scripted] = list(replies)
        self._fallback = fallback
        self.conversations: List[List[Turn]] = []
        self.tool_names: List[List[str]] = []

    async def generate(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolDeclaration],
        config: GenerationConfig,
    ) -> EngineReply:
        self.conversations.append(list(conversation))
        self.tool_names.append([declaration.name for declaration in tools])
        if not self._replies:
            return final(self._fallback)
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @property
    def calls(self) -> int:
        return len(self.conversations)


class LoopingEngine:
    """Always asks for the same tool, so the loop only ends at its iteration cap."""

    def __init__(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> None:
        self._name = name
        self._arguments = dict(arguments or {})
        self.calls = 0

    async def generate(self, conversation, tools, config) -> EngineReply:
        self.calls += 1
        return EngineReply(tool_invocations=[call(self._name, **self._arguments)])


class PurposeEngine:
    """Routes each worker to its own script by looking for its purpose in the system prompt."""

    def __init__(self, scripts: Dict[str, List[Scripted]], *, delay: float = 0.0) -> None:
        self._engines = {purpose: ScriptedEngine(replies) for purpose, replies in scripts.items()}
        self._delay = delay

    async def generate(self, conversation, tools, config) -> EngineReply:
        if self._delay:
            await asyncio.sleep(self._delay)
        system_prompt = conversation[0].content or ""
        for purpose, engine in self._engines.items():
            if f"Purpose: {purpose}\n" in system_prompt:
                return await engine.generate(conversation, tools, config)
        return final("no script")

    def engine_for(self, purpose: str) -> ScriptedEngine:
        return self._engines[purpose]
