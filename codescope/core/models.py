"""Core data models shared across orchestration components."""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(UTC)


class AgentStatus(str, Enum):
    """Lifecycle states for an agent tracked by the registry."""

    INITIALIZING = "initializing"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentStatus.COMPLETED, AgentStatus.FAILED)


@dataclass(slots=True)
class ToolInvocation:
    """A tool call requested by the reasoning engine."""

    call_id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    parse_error: Optional[str] = None
    raw_arguments: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"call_id": self.call_id, "name": self.name, "arguments": self.arguments}


@dataclass(slots=True)
class ToolResult:
    """Structured outcome of a single tool call."""

    name: str
    success: bool
    payload: Any = None
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    call_id: Optional[str] = None

    @classmethod
    def ok(cls, name: str, payload: Any = None, *, call_id: Optional[str] = None) -> ToolResult:
        return cls(name=name, success=True, payload=payload, call_id=call_id)

    @classmethod
    def failure(
        cls,
        name: str,
        error: str,
        *,
        errors: Optional[List[str]] = None,
        call_id: Optional[str] = None,
    ) -> ToolResult:
        return cls(name=name, success=False, error=error, errors=list(errors or []), call_id=call_id)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"tool": self.name, "success": self.success}
        if self.success:
            data["result"] = self.payload
        else:
            data["error"] = self.error
            if self.errors:
                data["errors"] = list(self.errors)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass(slots=True)
class ToolDeclaration:
    """Name, description and JSON schema the reasoning engine sees for a tool."""

    name: str
    description: str
    parameters: Dict[str, Any]


@dataclass(slots=True)
class ToolCallRecord:
    """One executed tool call, appended to an agent's history."""

    tool: str
    params: Dict[str, Any]
    result: ToolResult
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "params": self.params,
            "success": self.result.success,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True)
class AgentRecord:
    """Registry entry for a spawned agent. Only the registry mutates these."""

    agent_id: str
    sequence: int
    purpose: str
    context: Dict[str, Any] = field(default_factory=dict)
    status: AgentStatus = AgentStatus.INITIALIZING
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Any = None
    error: Optional[str] = None
    tool_call_history: List[ToolCallRecord] = field(default_factory=list)
    status_history: List[AgentStatus] = field(default_factory=list)

    def execution_time(self) -> float:
        """Seconds spent running, measured up to now while still in flight."""
        if self.started_at is None:
            return 0.0
        end = self.completed_at or utcnow()
        return (end - self.started_at).total_seconds()

    def snapshot(self) -> AgentRecord:
        return AgentRecord(
            agent_id=self.agent_id,
            sequence=self.sequence,
            purpose=self.purpose,
            context=copy.deepcopy(self.context),
            status=self.status,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            result=copy.deepcopy(self.result),
            error=self.error,
            tool_call_history=copy.deepcopy(self.tool_call_history),
            status_history=list(self.status_history),
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "purpose": self.purpose,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "execution_time": self.execution_time(),
            "tool_call_count": len(self.tool_call_history),
            "has_result": self.result is not None,
            "has_error": self.error is not None,
        }


@dataclass(slots=True)
class AgentResult:
    """Result view of a completed agent."""

    agent_id: str
    purpose: str
    result: Any
    execution_time: float
    tool_call_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "agent_id": self.agent_id,
            "purpose": self.purpose,
            "result": self.result,
            "execution_time": self.execution_time,
            "tool_call_count": self.tool_call_count,
        }


@dataclass(slots=True)
class SpawnRequest:
    """A queued request to run a worker; lives only inside the scheduler."""

    agent_id: str
    purpose: str
    context: Dict[str, Any] = field(default_factory=dict)
    queued_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "purpose": self.purpose,
            "queued_at": self.queued_at.isoformat(),
        }


@dataclass(slots=True)
class AgentOutcome:
    """What the orchestrator learned about one spawned agent after waiting on it."""

    agent_id: str
    purpose: str
    success: bool
    result: Any = None
    error: Optional[str] = None
    execution_time: float = 0.0
    tool_call_count: int = 0
    tool_history: List[Dict[str, Any]] = field(default_factory=list)
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "agent_id": self.agent_id,
            "purpose": self.purpose,
            "success": self.success,
        }
        if self.success:
            data.update(
                result=self.result,
                execution_time=self.execution_time,
                tool_call_count=self.tool_call_count,
                tool_history=self.tool_history,
            )
        else:
            data["error"] = self.error
        return data
