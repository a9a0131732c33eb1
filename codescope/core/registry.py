"""In-memory store of agent records, status and tool-call history."""
from __future__ import annotations

import copy
import logging
from itertools import count
from threading import Lock
from typing import Any, Dict, List, Optional

from codescope.core.errors import AgentNotFound, AgentNotReady, InvalidTransition
from codescope.core.models import (
    AgentRecord,
    AgentResult,
    AgentStatus,
    ToolCallRecord,
    utcnow,
)

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    AgentStatus.RUNNING: {AgentStatus.INITIALIZING},
    AgentStatus.COMPLETED: {AgentStatus.RUNNING},
    AgentStatus.FAILED: {AgentStatus.RUNNING},
}


class AgentRegistry:
    """
    Thread-safe registry owning every agent record.

    Records never leave the registry: readers get snapshots, and every
    mutation goes through a method that holds the lock. Ids are allocated
    from a counter that is never rewound, so they stay unique and strictly
    increasing for the lifetime of the registry.
    """

    def __init__(self, id_prefix: str = "agent_") -> None:
        self._records: Dict[str, AgentRecord] = {}
        self._counter = count()
        self._id_prefix = id_prefix
        self._lock = Lock()

    def register(self, purpose: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Allocate the next id and create an initializing record for it."""
        with self._lock:
            sequence = next(self._counter)
            agent_id = f"{self._id_prefix}{sequence}"
            record = AgentRecord(
                agent_id=agent_id,
                sequence=sequence,
                purpose=purpose,
                context=copy.deepcopy(context or {}),
            )
            record.status_history.append(record.status)
            self._records[agent_id] = record
        logger.info("Registered %s for: %s", agent_id, purpose)
        return agent_id

    def mark_running(self, agent_id: str) -> None:
        with self._lock:
            record = self._transition(agent_id, AgentStatus.RUNNING)
            record.started_at = utcnow()

    def complete(self, agent_id: str, result: Any) -> None:
        with self._lock:
            record = self._transition(agent_id, AgentStatus.COMPLETED)
            record.completed_at = utcnow()
            record.result = copy.deepcopy(result)

    def fail(self, agent_id: str, error: str) -> None:
        with self._lock:
            record = self._transition(agent_id, AgentStatus.FAILED)
            record.completed_at = utcnow()
            record.error = error

    def record_tool_call(self, agent_id: str, call: ToolCallRecord) -> None:
        with self._lock:
            self._require(agent_id).tool_call_history.append(copy.deepcopy(call))

    def get(self, agent_id: str) -> AgentRecord:
        with self._lock:
            return self._require(agent_id).snapshot()

    def list(self) -> List[AgentRecord]:
        """Return snapshots of every record in registration order."""
        with self._lock:
            return [record.snapshot() for record in self._records.values()]

    def filter_by_status(self, status: AgentStatus) -> List[AgentRecord]:
        status = AgentStatus(status)
        with self._lock:
            return [
                record.snapshot()
                for record in self._records.values()
                if record.status is status
            ]

    def get_result(self, agent_id: str) -> AgentResult:
        with self._lock:
            record = self._require(agent_id)
            if record.status is not AgentStatus.COMPLETED:
                raise AgentNotReady(agent_id, record.status.value)
            return AgentResult(
                agent_id=record.agent_id,
                purpose=record.purpose,
                result=copy.deepcopy(record.result),
                execution_time=record.execution_time(),
                tool_call_count=len(record.tool_call_history),
            )

    def tool_history(self, agent_id: str) -> List[ToolCallRecord]:
        with self._lock:
            return copy.deepcopy(self._require(agent_id).tool_call_history)

    def clear_completed(self) -> int:
        """Drop every record that reached a terminal state."""
        with self._lock:
            finished = [
                agent_id
                for agent_id, record in self._records.items()
                if record.status.is_terminal
            ]
            for agent_id in finished:
                del self._records[agent_id]
        return len(finished)

    def clear_all(self) -> int:
        with self._lock:
            cleared = len(self._records)
            self._records.clear()
        return cleared

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, agent_id: object) -> bool:
        with self._lock:
            return agent_id in self._records

    def _require(self, agent_id: str) -> AgentRecord:
        record = self._records.get(agent_id)
        if record is None:
            raise AgentNotFound(agent_id)
        return record

    def _transition(self, agent_id: str, target: AgentStatus) -> AgentRecord:
        # Caller holds the lock.
        record = self._require(agent_id)
        if record.status not in _ALLOWED_TRANSITIONS[target]:
            raise InvalidTransition(agent_id, record.status.value, target.value)
        record.status = target
        record.status_history.append(target)
        return record
