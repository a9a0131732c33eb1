"""Error taxonomy shared by the orchestration core."""
from __future__ import annotations

from typing import List, Optional


class CodescopeError(Exception):
    """Base class for all errors raised inside the core."""


class AgentNotFound(CodescopeError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent {agent_id} not found")
        self.agent_id = agent_id


class AgentNotReady(CodescopeError):
    def __init__(self, agent_id: str, status: str) -> None:
        super().__init__(f"Agent {agent_id} has not completed yet. Status: {status}")
        self.agent_id = agent_id
        self.status = status


class InvalidTransition(CodescopeError):
    """Raised when a status change would regress or skip a lifecycle step."""

    def __init__(self, agent_id: str, current: str, target: str) -> None:
        super().__init__(f"Agent {agent_id} cannot move from {current} to {target}")
        self.agent_id = agent_id
        self.current = current
        self.target = target


class ToolValidationError(CodescopeError):
    """Tool parameters did not match the tool's declared schema."""

    def __init__(self, tool: str, errors: List[str]) -> None:
        super().__init__(f"Invalid parameters for {tool}: {'; '.join(errors)}")
        self.tool = tool
        self.errors = errors


class ToolExecutionError(CodescopeError):
    """A tool reported its own failure."""

    def __init__(self, message: str, *, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class EngineError(CodescopeError):
    """The reasoning engine returned an empty or malformed response."""


class IterationLimitExceeded(CodescopeError):
    def __init__(self, max_iterations: int) -> None:
        super().__init__(f"Maximum iterations ({max_iterations}) reached")
        self.max_iterations = max_iterations


class SchedulerTaskFailure(CodescopeError):
    """Wraps an exception that escaped a queued worker."""

    def __init__(self, agent_id: str, cause: BaseException) -> None:
        super().__init__(f"{agent_id} crashed: {cause}")
        self.agent_id = agent_id
        self.cause = cause
