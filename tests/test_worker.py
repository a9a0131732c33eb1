"""Tests for worker execution and the spawn restriction on sub-agents."""
from __future__ import annotations

from pathlib import Path

import pytest

from codescope.agents.worker import Worker
from codescope.core.errors import EngineError
from codescope.core.models import AgentStatus
from codescope.core.registry import AgentRegistry
from codescope.tools.executor import SPAWN_TOOL_NAME, SpawningToolExecutor, ToolExecutor
from codescope.tools.files import builtin_tools

from stubs import LoopingEngine, ScriptedEngine, call, final, tools


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def make_worker(registry: AgentRegistry, engine, purpose: str = "Inspect auth", **kwargs) -> Worker:
    agent_id = registry.register(purpose, kwargs.pop("context", None))
    return Worker(
        agent_id,
        purpose,
        registry.get(agent_id).context,
        registry=registry,
        engine=engine,
        tools=ToolExecutor(builtin_tools()),
        **kwargs,
    )


@pytest.mark.anyio
async def test_worker_completes_and_mirrors_tool_calls(tmp_path: Path) -> None:
    target = tmp_path / "auth.py"
    target.write_text("def login():\n    return True\n")
    registry = AgentRegistry()
    engine = ScriptedEngine(
        [
            tools(call("list_files", directory=str(tmp_path), pattern="*.py")),
            tools(call("file_read", file_path=str(target))),
            final("login() always returns True"),
        ]
    )
    worker = make_worker(registry, engine)

    report = await worker.execute()

    assert report.success
    assert report.tool_call_count == 2
    record = registry.get(worker.agent_id)
    assert record.status is AgentStatus.COMPLETED
    assert record.result["type"] == "completion"
    assert record.result["message"] == "login() always returns True"
    assert [call.tool for call in record.tool_call_history] == ["list_files", "file_read"]
    assert [call.tool for call in worker.tool_calls] == ["list_files", "file_read"]


@pytest.mark.anyio
async def test_worker_never_sees_spawn_tool() -> None:
    registry = AgentRegistry()
    engine = ScriptedEngine([tools(call(SPAWN_TOOL_NAME, purpose="recurse")), final("ok")])
    worker = make_worker(registry, engine)

    await worker.execute()

    assert SPAWN_TOOL_NAME not in worker.tool_names
    assert all(SPAWN_TOOL_NAME not in names for names in engine.tool_names)
    tool_turn = engine.conversations[1][-1]
    assert tool_turn.tool_result.error == f"Unknown tool: {SPAWN_TOOL_NAME}"
    assert len(registry) == 1


def test_worker_rejects_spawning_tool_set() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")
    spawning = SpawningToolExecutor(ToolExecutor(), spawn=lambda params: {})

    with pytest.raises(TypeError):
        Worker(agent_id, "task", registry=registry, engine=ScriptedEngine(), tools=spawning)


def test_spawn_name_cannot_be_registered_on_plain_executor() -> None:
    executor = ToolExecutor()
    [spec] = [spec for spec in builtin_tools() if spec.name == "file_read"]
    spec.name = SPAWN_TOOL_NAME

    with pytest.raises(ValueError):
        executor.register(spec)


@pytest.mark.anyio
async def test_engine_error_fails_the_worker() -> None:
    registry = AgentRegistry()
    worker = make_worker(registry, ScriptedEngine([EngineError("quota exceeded")]))

    report = await worker.execute()

    assert not report.success
    assert report.error == "quota exceeded"
    record = registry.get(worker.agent_id)
    assert record.status is AgentStatus.FAILED
    assert record.error == "quota exceeded"


@pytest.mark.anyio
async def test_unexpected_exception_fails_the_worker() -> None:
    registry = AgentRegistry()
    worker = make_worker(registry, ScriptedEngine([RuntimeError("socket closed")]))

    report = await worker.execute()

    assert not report.success
    assert registry.get(worker.agent_id).status is AgentStatus.FAILED
    assert registry.get(worker.agent_id).error == "socket closed"


@pytest.mark.anyio
async def test_iteration_cap_still_completes_with_partial_history() -> None:
    registry = AgentRegistry()
    engine = LoopingEngine("list_files", {"directory": "/nonexistent-dir"})
    worker = make_worker(registry, engine, max_iterations=2)

    report = await worker.execute()

    assert report.success
    record = registry.get(worker.agent_id)
    assert record.status is AgentStatus.COMPLETED
    assert record.result["type"] == "timeout"
    assert record.result["message"] == "Maximum iterations (2) reached"
    assert record.result["partial_history"]
    assert len(record.tool_call_history) == 2


def test_system_prompt_carries_assignment_and_context() -> None:
    registry = AgentRegistry()
    worker = make_worker(
        registry,
        ScriptedEngine(),
        purpose="Review JWT handling",
        context={"files": ["jwt.py"], "instructions": "Focus on expiry", "data": {"alg": "HS256"}},
    )

    prompt = worker.system_prompt()

    assert f"Agent ID: {worker.agent_id}" in prompt
    assert "Purpose: Review JWT handling" in prompt
    assert "- jwt.py" in prompt
    assert "Focus on expiry" in prompt
    assert '"alg": "HS256"' in prompt
