"""Tests for the agent registry lifecycle and queries."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from codescope.core.errors import AgentNotFound, AgentNotReady, InvalidTransition
from codescope.core.models import AgentStatus, ToolCallRecord, ToolResult
from codescope.core.registry import AgentRegistry


def test_ids_are_unique_and_increasing() -> None:
    registry = AgentRegistry()
    ids = [registry.register(f"task {n}") for n in range(5)]

    assert ids == ["agent_0", "agent_1", "agent_2", "agent_3", "agent_4"]
    assert [record.agent_id for record in registry.list()] == ids


def test_ids_never_reused_after_clear_all() -> None:
    registry = AgentRegistry()
    first = registry.register("first")
    assert registry.clear_all() == 1

    second = registry.register("second")
    assert second != first
    assert second == "agent_1"
    assert registry.get(second).sequence == 1


def test_concurrent_registration_yields_distinct_ids() -> None:
    registry = AgentRegistry()
    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda n: registry.register(f"task {n}"), range(200)))

    assert len(set(ids)) == 200
    sequences = [record.sequence for record in registry.list()]
    assert sorted(sequences) == list(range(200))


def test_lifecycle_records_timestamps_and_history() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("inspect auth", {"files": ["auth.py"]})

    record = registry.get(agent_id)
    assert record.status is AgentStatus.INITIALIZING
    assert record.context == {"files": ["auth.py"]}
    assert record.started_at is None

    registry.mark_running(agent_id)
    registry.complete(agent_id, {"type": "completion", "message": "ok"})

    record = registry.get(agent_id)
    assert record.status is AgentStatus.COMPLETED
    assert record.started_at is not None
    assert record.completed_at >= record.started_at
    assert record.status_history == [
        AgentStatus.INITIALIZING,
        AgentStatus.RUNNING,
        AgentStatus.COMPLETED,
    ]


def test_terminal_states_never_regress() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")
    registry.mark_running(agent_id)
    registry.fail(agent_id, "boom")

    with pytest.raises(InvalidTransition):
        registry.mark_running(agent_id)
    with pytest.raises(InvalidTransition):
        registry.complete(agent_id, "late")
    assert registry.get(agent_id).status is AgentStatus.FAILED
    assert registry.get(agent_id).error == "boom"


def test_cannot_complete_without_running() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")

    with pytest.raises(InvalidTransition):
        registry.complete(agent_id, "skipped")


def test_get_returns_snapshot() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task", {"data": {"k": 1}})

    snapshot = registry.get(agent_id)
    snapshot.context["data"]["k"] = 99
    snapshot.status = AgentStatus.FAILED

    record = registry.get(agent_id)
    assert record.context == {"data": {"k": 1}}
    assert record.status is AgentStatus.INITIALIZING


def test_result_view_does_not_alias_stored_result() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")
    registry.mark_running(agent_id)
    produced = {"findings": ["a"]}
    registry.complete(agent_id, produced)

    produced["findings"].append("after complete")
    registry.get_result(agent_id).result["findings"].append("tampered")
    registry.get(agent_id).result["findings"].append("tampered again")

    assert registry.get(agent_id).result == {"findings": ["a"]}
    assert registry.get_result(agent_id).result == {"findings": ["a"]}


def test_tool_history_views_do_not_alias_stored_calls() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")
    registry.mark_running(agent_id)
    call = ToolCallRecord(
        tool="file_read",
        params={"file_path": "/srv/app.py"},
        result=ToolResult.ok("file_read", {"content": "x = 1"}),
    )
    registry.record_tool_call(agent_id, call)

    call.params["file_path"] = "/changed-by-caller"
    registry.get(agent_id).tool_call_history[0].params["file_path"] = "/tampered"
    registry.tool_history(agent_id)[0].result.payload["content"] = "tampered"

    [stored] = registry.tool_history(agent_id)
    assert stored.params == {"file_path": "/srv/app.py"}
    assert stored.result.payload == {"content": "x = 1"}


def test_unknown_agent_raises_not_found() -> None:
    registry = AgentRegistry()

    with pytest.raises(AgentNotFound, match="Agent agent_7 not found"):
        registry.get("agent_7")
    with pytest.raises(AgentNotFound):
        registry.mark_running("agent_7")
    assert "agent_7" not in registry


def test_get_result_requires_completion() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")
    registry.mark_running(agent_id)

    with pytest.raises(AgentNotReady, match="Status: running"):
        registry.get_result(agent_id)

    registry.complete(agent_id, {"message": "found 3 issues"})
    result = registry.get_result(agent_id)
    assert result.result == {"message": "found 3 issues"}
    assert result.to_dict()["success"] is True


def test_tool_calls_are_recorded_in_order() -> None:
    registry = AgentRegistry()
    agent_id = registry.register("task")
    registry.mark_running(agent_id)
    for name in ("list_files", "file_read"):
        registry.record_tool_call(
            agent_id,
            ToolCallRecord(tool=name, params={}, result=ToolResult.ok(name, {})),
        )

    history = registry.tool_history(agent_id)
    assert [call.tool for call in history] == ["list_files", "file_read"]
    assert registry.get(agent_id).summary()["tool_call_count"] == 2


def test_filter_and_clear_completed() -> None:
    registry = AgentRegistry()
    done = registry.register("done")
    failed = registry.register("failed")
    running = registry.register("running")
    queued = registry.register("queued")
    for agent_id in (done, failed, running):
        registry.mark_running(agent_id)
    registry.complete(done, "ok")
    registry.fail(failed, "bad")

    assert [r.agent_id for r in registry.filter_by_status(AgentStatus.RUNNING)] == [running]

    assert registry.clear_completed() == 2
    assert [r.agent_id for r in registry.list()] == [running, queued]
    assert len(registry) == 2
