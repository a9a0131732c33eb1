"""Query surface over the registry and scheduler for outer layers."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from codescope.core.errors import AgentNotFound, AgentNotReady
from codescope.core.models import AgentOutcome, AgentStatus
from codescope.core.registry import AgentRegistry
from codescope.core.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_WAIT_TIMEOUT = 300.0


async def await_terminal(
    registry: AgentRegistry,
    agent_id: str,
    *,
    deadline: float,
    purpose: Optional[str] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> AgentOutcome:
    """
    Poll the registry until ``agent_id`` is terminal or ``deadline`` passes.

    ``deadline`` is an event-loop timestamp. Never raises for a missing,
    failed or slow agent; each case becomes an unsuccessful outcome.
    """
    loop = asyncio.get_running_loop()
    while True:
        try:
            record = registry.get(agent_id)
        except AgentNotFound as exc:
            return AgentOutcome(agent_id=agent_id, purpose=purpose or "", success=False, error=str(exc))

        label = purpose if purpose is not None else record.purpose
        if record.status is AgentStatus.COMPLETED:
            return AgentOutcome(
                agent_id=agent_id,
                purpose=label,
                success=True,
                result=record.result,
                execution_time=record.execution_time(),
                tool_call_count=len(record.tool_call_history),
                tool_history=[call.to_dict() for call in record.tool_call_history],
            )
        if record.status is AgentStatus.FAILED:
            return AgentOutcome(
                agent_id=agent_id,
                purpose=label,
                success=False,
                error=f"Agent {agent_id} failed: {record.error}",
                execution_time=record.execution_time(),
                tool_call_count=len(record.tool_call_history),
            )

        remaining = deadline - loop.time()
        if remaining <= 0:
            return AgentOutcome(
                agent_id=agent_id,
                purpose=label,
                success=False,
                error=f"Timeout waiting for agent {agent_id}",
                timed_out=True,
            )
        await asyncio.sleep(min(poll_interval, remaining))


class AgentManager:
    """Monitoring and control over every agent the scheduler has run."""

    def __init__(
        self,
        registry: AgentRegistry,
        scheduler: Scheduler,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._poll_interval = poll_interval

    def list_agents(self) -> Dict[str, Any]:
        agents = [record.summary() for record in self._registry.list()]
        return {"success": True, "count": len(agents), "agents": agents}

    def agent_status(self, agent_id: str) -> Dict[str, Any]:
        try:
            record = self._registry.get(agent_id)
        except AgentNotFound as exc:
            return {"success": False, "error": str(exc)}
        return {
            "success": True,
            **record.summary(),
            "started_at": record.started_at.isoformat() if record.started_at else None,
            "completed_at": record.completed_at.isoformat() if record.completed_at else None,
            "error": record.error,
        }

    def agent_result(self, agent_id: str) -> Dict[str, Any]:
        try:
            return self._registry.get_result(agent_id).to_dict()
        except (AgentNotFound, AgentNotReady) as exc:
            return {"success": False, "error": str(exc)}

    def agent_history(self, agent_id: str) -> Dict[str, Any]:
        try:
            calls = self._registry.tool_history(agent_id)
        except AgentNotFound as exc:
            return {"success": False, "error": str(exc)}
        return {
            "success": True,
            "agent_id": agent_id,
            "tool_calls": [call.to_dict() for call in calls],
        }

    def agents_by_status(self, status: str) -> Dict[str, Any]:
        try:
            wanted = AgentStatus(status)
        except ValueError:
            return {"success": False, "error": f"Unknown status: {status}"}
        agents = [record.summary() for record in self._registry.filter_by_status(wanted)]
        return {"success": True, "status": wanted.value, "count": len(agents), "agents": agents}

    def summary(self) -> Dict[str, Any]:
        records = self._registry.list()
        by_status = {status.value: 0 for status in AgentStatus}
        total_tool_calls = 0
        completed_time = 0.0
        completed_count = 0
        for record in records:
            by_status[record.status.value] += 1
            total_tool_calls += len(record.tool_call_history)
            if record.status is AgentStatus.COMPLETED:
                completed_time += record.execution_time()
                completed_count += 1
        return {
            "success": True,
            "summary": {
                "total_agents": len(records),
                "queued_tasks": self._scheduler.pending,
                "by_status": by_status,
                "total_tool_calls": total_tool_calls,
                "average_execution_time": (
                    completed_time / completed_count if completed_count else 0.0
                ),
            },
            "is_processing": self._scheduler.is_processing,
        }

    def queue_status(self) -> Dict[str, Any]:
        return {
            "success": True,
            "queue_length": self._scheduler.pending,
            "is_processing": self._scheduler.is_processing,
            "in_flight": self._scheduler.in_flight,
            "queue": [request.to_dict() for request in self._scheduler.queued()],
        }

    def cancel_queue(self) -> Dict[str, Any]:
        return {"success": True, "cancelled_tasks": self._scheduler.cancel_queued()}

    def clear_completed(self) -> Dict[str, Any]:
        cleared = self._registry.clear_completed()
        return {"success": True, "cleared": cleared, "remaining": len(self._registry)}

    def clear_all(self) -> Dict[str, Any]:
        cancelled = self._scheduler.cancel_queued()
        return {"success": True, "cleared": self._registry.clear_all(), "cancelled_tasks": cancelled}

    async def wait_for_agent(self, agent_id: str, timeout: float = DEFAULT_WAIT_TIMEOUT) -> Dict[str, Any]:
        deadline = asyncio.get_running_loop().time() + timeout
        outcome = await await_terminal(
            self._registry, agent_id, deadline=deadline, poll_interval=self._poll_interval
        )
        if outcome.success:
            return self.agent_result(agent_id)
        return {"success": False, "error": outcome.error}

    async def wait_for_all(self, timeout: float = DEFAULT_WAIT_TIMEOUT) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            records = self._registry.list()
            # Cancelled requests stay initializing forever, so only running
            # records and queued work count as outstanding.
            running = any(record.status is AgentStatus.RUNNING for record in records)
            if not running and not self._scheduler.pending and not self._scheduler.is_processing:
                return {
                    "success": True,
                    "total_agents": len(records),
                    "results": [
                        {
                            "agent_id": record.agent_id,
                            "purpose": record.purpose,
                            "status": record.status.value,
                            "result": self.agent_result(record.agent_id),
                        }
                        for record in records
                    ],
                }
            remaining = deadline - loop.time()
            if remaining <= 0:
                return {"success": False, "error": "Timeout waiting for all agents"}
            await asyncio.sleep(min(self._poll_interval, remaining))
