"""Tool catalog, schema validation and structured dispatch."""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError

from codescope.core.errors import ToolExecutionError, ToolValidationError
from codescope.core.models import ToolDeclaration, ToolResult

logger = logging.getLogger(__name__)

SPAWN_TOOL_NAME = "spawn_agent"

ToolHandler = Callable[[Any], Union[Any, Awaitable[Any]]]


@dataclass(slots=True)
class ToolSpec:
    """A named tool: its parameter model and the handler that runs it."""

    name: str
    description: str
    parameters: Type[BaseModel]
    handler: ToolHandler

    def declaration(self) -> ToolDeclaration:
        schema = self.parameters.model_json_schema()
        schema.pop("title", None)
        return ToolDeclaration(name=self.name, description=self.description, parameters=schema)


@dataclass(slots=True)
class ValidationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _format_errors(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "parameters"
        if error.get("type") == "missing":
            messages.append(f"Missing required parameter: {location}")
        else:
            messages.append(f"Invalid parameter {location}: {error.get('msg')}")
    return messages


class ToolExecutor:
    """
    Catalog of tools available to an agent.

    Tools are opaque to the core: a name, a pydantic model describing the
    parameters, and a handler returning a JSON-friendly payload. Handlers
    may be sync or async; anything they raise becomes a failed ToolResult.
    The spawn tool can never be registered here, so a worker holding a
    plain executor has no way to spawn.
    """

    def __init__(self, specs: Iterable[ToolSpec] = ()) -> None:
        self._specs: Dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name == SPAWN_TOOL_NAME:
            raise ValueError(f"'{SPAWN_TOOL_NAME}' is reserved for the orchestrator")
        if spec.name in self._specs:
            raise ValueError(f"Tool '{spec.name}' is already registered")
        self._specs[spec.name] = spec

    def names(self) -> List[str]:
        return list(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def declarations(self) -> List[ToolDeclaration]:
        return [spec.declaration() for spec in self._specs.values()]

    def validate(self, name: str, params: Optional[Dict[str, Any]]) -> ValidationReport:
        spec = self._specs.get(name)
        if spec is None:
            return ValidationReport(valid=False, errors=[f"Unknown tool: {name}"])
        try:
            spec.parameters.model_validate(params or {})
        except ValidationError as exc:
            return ValidationReport(valid=False, errors=_format_errors(exc))
        return ValidationReport(valid=True)

    async def execute(self, name: str, params: Optional[Dict[str, Any]]) -> ToolResult:
        spec = self._specs.get(name)
        if spec is None:
            return ToolResult.failure(name, f"Unknown tool: {name}")
        try:
            arguments = spec.parameters.model_validate(params or {})
        except ValidationError as exc:
            errors = _format_errors(exc)
            return ToolResult.failure(name, "; ".join(errors), errors=errors)
        return await _run_handler(name, spec.handler, arguments)


async def _run_handler(name: str, handler: ToolHandler, arguments: BaseModel) -> ToolResult:
    try:
        payload = handler(arguments)
        if inspect.isawaitable(payload):
            payload = await payload
    except ToolValidationError as exc:
        logger.info("Tool %s rejected its arguments: %s", name, exc)
        return ToolResult.failure(name, "; ".join(exc.errors), errors=exc.errors)
    except ToolExecutionError as exc:
        logger.info("Tool %s reported failure: %s", name, exc)
        return ToolResult.failure(name, str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Tool %s raised %s: %s", name, type(exc).__name__, exc)
        return ToolResult.failure(name, str(exc) or type(exc).__name__)
    return ToolResult.ok(name, payload)


class SpawnContext(BaseModel):
    files: Optional[List[str]] = Field(
        default=None, description="Optional: specific files for the agent to focus on"
    )
    instructions: Optional[str] = Field(
        default=None, description="Optional: specific instructions for the agent"
    )
    data: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional: any additional data the agent needs"
    )


class SpawnAgentParams(BaseModel):
    purpose: str = Field(
        ...,
        min_length=1,
        description=(
            "Clear description of the agent's task "
            '(e.g. "Analyze JWT logic", "Inspect authentication flow")'
        ),
    )
    context: Optional[SpawnContext] = Field(
        default=None, description="Context and data to provide to the agent"
    )

    def context_payload(self) -> Dict[str, Any]:
        if self.context is None:
            return {}
        return self.context.model_dump(exclude_none=True)


SPAWN_TOOL_DESCRIPTION = (
    "Creates a specialized sub-agent with a specific assigned task. Sub-agents "
    "inherit all tools except spawn_agent and run asynchronously; their results "
    "are collected after you finish. Use when parallelization or specialization "
    "offers clear benefit."
)

SpawnHandler = Callable[[SpawnAgentParams], Union[Dict[str, Any], Awaitable[Dict[str, Any]]]]


class SpawningToolExecutor:
    """
    The orchestrator's tool set: a plain executor plus the spawn tool.

    Not a ToolExecutor subclass; workers reject it.
    """

    def __init__(self, base: ToolExecutor, spawn: SpawnHandler) -> None:
        self._base = base
        self._spawn = ToolSpec(
            name=SPAWN_TOOL_NAME,
            description=SPAWN_TOOL_DESCRIPTION,
            parameters=SpawnAgentParams,
            handler=spawn,
        )

    def names(self) -> List[str]:
        return [SPAWN_TOOL_NAME, *self._base.names()]

    def __contains__(self, name: object) -> bool:
        return name == SPAWN_TOOL_NAME or name in self._base

    def declarations(self) -> List[ToolDeclaration]:
        return [self._spawn.declaration(), *self._base.declarations()]

    def validate(self, name: str, params: Optional[Dict[str, Any]]) -> ValidationReport:
        if name != SPAWN_TOOL_NAME:
            return self._base.validate(name, params)
        try:
            SpawnAgentParams.model_validate(params or {})
        except ValidationError as exc:
            return ValidationReport(valid=False, errors=_format_errors(exc))
        return ValidationReport(valid=True)

    async def execute(self, name: str, params: Optional[Dict[str, Any]]) -> ToolResult:
        if name != SPAWN_TOOL_NAME:
            return await self._base.execute(name, params)
        try:
            arguments = SpawnAgentParams.model_validate(params or {})
        except ValidationError as exc:
            errors = _format_errors(exc)
            return ToolResult.failure(name, "; ".join(errors), errors=errors)
        return await _run_handler(name, self._spawn.handler, arguments)
