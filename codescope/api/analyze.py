"""Analysis endpoint that runs one orchestrated task."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from codescope.orchestration.orchestrator import Orchestrator
from codescope.runtime import create_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyze", tags=["analyze"])


class AnalyzeRequest(BaseModel):
    task: str = Field(..., min_length=1, description="Natural language analysis task")
    workspace: Optional[str] = Field(
        default=None,
        description="Root directory the agents should analyze",
    )
    wait_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds to wait for spawned agents once the orchestrator finishes",
    )


class AnalyzeResponse(BaseModel):
    success: bool
    state: str
    result: Dict[str, Any]
    spawned_agents: List[Dict[str, Any]] = Field(default_factory=list)
    agent_results: List[Dict[str, Any]] = Field(default_factory=list)
    orchestrator_tool_history: List[Dict[str, Any]] = Field(default_factory=list)
    conversation_turns: int = 0
    error: Optional[str] = None


@router.post("", response_model=AnalyzeResponse)
async def analyze(
    request: AnalyzeRequest,
    orchestrator: Orchestrator = Depends(create_orchestrator),
) -> AnalyzeResponse:
    """Run the orchestrator on a task and return its result with every sub-agent outcome."""
    logger.info("Analysis requested: %s", request.task)
    outcome = await orchestrator.execute(
        request.task,
        request.workspace,
        wait_timeout=request.wait_timeout,
    )
    return AnalyzeResponse(**outcome.to_dict())
