"""HTTP API exposing the agent registry and scheduler queue."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from codescope.core.errors import AgentNotFound, AgentNotReady
from codescope.core.models import AgentRecord, ToolCallRecord
from codescope.core.registry import AgentRegistry
from codescope.orchestration.manager import AgentManager
from codescope.runtime import get_manager, get_registry

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentResponse(BaseModel):
    agent_id: str
    purpose: str
    status: str
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    execution_time: float
    tool_call_count: int
    has_result: bool
    error: Optional[str] = None

    @classmethod
    def from_record(cls, record: AgentRecord) -> "AgentResponse":
        return cls(
            agent_id=record.agent_id,
            purpose=record.purpose,
            status=record.status.value,
            created_at=record.created_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
            execution_time=record.execution_time(),
            tool_call_count=len(record.tool_call_history),
            has_result=record.result is not None,
            error=record.error,
        )


class AgentResultResponse(BaseModel):
    agent_id: str
    purpose: str
    result: Any = None
    execution_time: float
    tool_call_count: int


class ToolCallResponse(BaseModel):
    tool: str
    params: Dict[str, Any]
    success: bool
    error: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_call(cls, call: ToolCallRecord) -> "ToolCallResponse":
        return cls(
            tool=call.tool,
            params=call.params,
            success=call.result.success,
            error=call.result.error,
            timestamp=call.timestamp,
        )


class ClearResponse(BaseModel):
    cleared: int
    cancelled_tasks: int = 0


def _not_found(exc: AgentNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=List[AgentResponse])
async def list_agents(registry: AgentRegistry = Depends(get_registry)) -> List[AgentResponse]:
    return [AgentResponse.from_record(record) for record in registry.list()]


@router.get("/summary")
async def summary(manager: AgentManager = Depends(get_manager)) -> dict:
    return manager.summary()


@router.get("/queue")
async def queue_status(manager: AgentManager = Depends(get_manager)) -> dict:
    return manager.queue_status()


@router.delete("/queue")
async def cancel_queue(manager: AgentManager = Depends(get_manager)) -> dict:
    return manager.cancel_queue()


@router.delete("/completed", response_model=ClearResponse)
async def clear_completed(registry: AgentRegistry = Depends(get_registry)) -> ClearResponse:
    return ClearResponse(cleared=registry.clear_completed())


@router.delete("", response_model=ClearResponse)
async def clear_all(manager: AgentManager = Depends(get_manager)) -> ClearResponse:
    outcome = manager.clear_all()
    return ClearResponse(cleared=outcome["cleared"], cancelled_tasks=outcome["cancelled_tasks"])


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, registry: AgentRegistry = Depends(get_registry)) -> AgentResponse:
    try:
        record = registry.get(agent_id)
    except AgentNotFound as exc:
        raise _not_found(exc) from exc
    return AgentResponse.from_record(record)


@router.get("/{agent_id}/result", response_model=AgentResultResponse)
async def get_result(
    agent_id: str,
    registry: AgentRegistry = Depends(get_registry),
) -> AgentResultResponse:
    try:
        result = registry.get_result(agent_id)
    except AgentNotFound as exc:
        raise _not_found(exc) from exc
    except AgentNotReady as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return AgentResultResponse(
        agent_id=result.agent_id,
        purpose=result.purpose,
        result=result.result,
        execution_time=result.execution_time,
        tool_call_count=result.tool_call_count,
    )


@router.get("/{agent_id}/history", response_model=List[ToolCallResponse])
async def get_history(
    agent_id: str,
    registry: AgentRegistry = Depends(get_registry),
) -> List[ToolCallResponse]:
    try:
        calls = registry.tool_history(agent_id)
    except AgentNotFound as exc:
        raise _not_found(exc) from exc
    return [ToolCallResponse.from_call(call) for call in calls]
