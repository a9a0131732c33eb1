"""Tests for the bounded tool-calling conversation loop."""
from __future__ import annotations

import json
from typing import List

import pytest
from pydantic import BaseModel

from codescope.core.conversation import ConversationLoop, EngineReply, OutcomeType
from codescope.core.errors import EngineError
from codescope.core.models import ToolCallRecord, ToolInvocation
from codescope.tools.executor import ToolExecutor, ToolSpec

from stubs import LoopingEngine, ScriptedEngine, call, final, tools


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class EchoParams(BaseModel):
    text: str


def make_executor(seen: List[str]) -> ToolExecutor:
    def echo(params: EchoParams) -> dict:
        seen.append(params.text)
        return {"echo": params.text}

    async def shout(params: EchoParams) -> dict:
        seen.append(params.text.upper())
        return {"echo": params.text.upper()}

    return ToolExecutor(
        [
            ToolSpec(name="echo", description="Echo text back", parameters=EchoParams, handler=echo),
            ToolSpec(name="shout", description="Echo text loudly", parameters=EchoParams, handler=shout),
        ]
    )


def tool_turns(outcome) -> List[dict]:
    return [json.loads(turn.content) for turn in outcome.history if turn.role == "tool"]


@pytest.mark.anyio
async def test_final_reply_on_first_iteration_completes() -> None:
    engine = ScriptedEngine([final("All good")])
    loop = ConversationLoop(engine, make_executor([]))

    outcome = await loop.run("system", "user")

    assert outcome.type is OutcomeType.COMPLETION
    assert outcome.message == "All good"
    assert outcome.iterations == 0
    assert outcome.tool_call_count == 0
    assert [turn.role for turn in outcome.history] == ["system", "user", "assistant"]


@pytest.mark.anyio
async def test_tool_results_follow_invocation_order() -> None:
    seen: List[str] = []
    first, second, third = call("echo", text="a"), call("shout", text="b"), call("echo", text="c")
    engine = ScriptedEngine([tools(first, second, third), final("done")])

    outcome = await ConversationLoop(engine, make_executor(seen)).run("system", "user")

    assert seen == ["a", "B", "c"]
    tool_entries = [turn for turn in outcome.history if turn.role == "tool"]
    assert [turn.tool_call_id for turn in tool_entries] == [
        first.call_id,
        second.call_id,
        third.call_id,
    ]
    assert [entry["result"]["echo"] for entry in tool_turns(outcome)] == ["a", "B", "c"]
    assert outcome.tool_call_count == 3
    # Every result was in the transcript before the engine was asked again.
    assert len(engine.conversations[1]) == 2 + 1 + 3


@pytest.mark.anyio
async def test_loop_stops_at_iteration_cap() -> None:
    engine = LoopingEngine("echo", {"text": "again"})
    loop = ConversationLoop(engine, make_executor([]), max_iterations=3)

    outcome = await loop.run("system", "user")

    assert engine.calls == 3
    assert outcome.type is OutcomeType.TIMEOUT
    assert outcome.message == "Maximum iterations (3) reached"
    assert outcome.iterations == 3
    assert "partial_history" in outcome.to_dict()


@pytest.mark.anyio
async def test_unknown_tool_becomes_failure_and_loop_continues() -> None:
    engine = ScriptedEngine([tools(call("foo", x=1)), final("recovered")])

    outcome = await ConversationLoop(engine, make_executor([])).run("system", "user")

    assert outcome.type is OutcomeType.COMPLETION
    assert outcome.message == "recovered"
    [entry] = tool_turns(outcome)
    assert entry == {
        "tool": "foo",
        "success": False,
        "error": "Unknown tool: foo",
        "errors": ["Unknown tool: foo"],
    }
    assert outcome.tool_call_count == 0


@pytest.mark.anyio
async def test_missing_parameter_is_reported_without_running_handler() -> None:
    seen: List[str] = []
    engine = ScriptedEngine([tools(call("echo")), final("ok")])

    outcome = await ConversationLoop(engine, make_executor(seen)).run("system", "user")

    assert seen == []
    [entry] = tool_turns(outcome)
    assert entry["success"] is False
    assert entry["errors"] == ["Missing required parameter: text"]


@pytest.mark.anyio
async def test_malformed_arguments_become_failure() -> None:
    broken = ToolInvocation(call_id="call_x", name="echo", parse_error="Expecting value")
    engine = ScriptedEngine([EngineReply(tool_invocations=[broken]), final("ok")])

    outcome = await ConversationLoop(engine, make_executor([])).run("system", "user")

    [entry] = tool_turns(outcome)
    assert entry["success"] is False
    assert "Malformed arguments for echo" in entry["error"]


@pytest.mark.anyio
async def test_handler_exception_is_contained() -> None:
    def explode(params: EchoParams) -> dict:
        raise OSError("disk on fire")

    executor = ToolExecutor(
        [ToolSpec(name="explode", description="Always fails", parameters=EchoParams, handler=explode)]
    )
    engine = ScriptedEngine([tools(call("explode", text="x")), final("moving on")])

    outcome = await ConversationLoop(engine, executor).run("system", "user")

    assert outcome.type is OutcomeType.COMPLETION
    [entry] = tool_turns(outcome)
    assert entry == {"tool": "explode", "success": False, "error": "disk on fire"}
    assert outcome.tool_call_count == 1


@pytest.mark.anyio
async def test_empty_reply_is_an_error() -> None:
    engine = ScriptedEngine([EngineReply(text="   ")])

    outcome = await ConversationLoop(engine, make_executor([])).run("system", "user")

    assert outcome.type is OutcomeType.ERROR
    assert outcome.error == "No response from model"
    assert not outcome.succeeded


@pytest.mark.anyio
async def test_engine_error_ends_the_run() -> None:
    engine = ScriptedEngine([EngineError("rate limited")])

    outcome = await ConversationLoop(engine, make_executor([])).run("system", "user")

    assert outcome.type is OutcomeType.ERROR
    assert outcome.error == "rate limited"


@pytest.mark.anyio
async def test_listener_sees_each_executed_call() -> None:
    calls: List[ToolCallRecord] = []
    engine = ScriptedEngine(
        [tools(call("echo", text="one")), tools(call("foo"), call("shout", text="two")), final("done")]
    )
    loop = ConversationLoop(engine, make_executor([]), on_tool_call=calls.append)

    outcome = await loop.run("system", "user")

    assert [(record.tool, record.params) for record in calls] == [
        ("echo", {"text": "one"}),
        ("shout", {"text": "two"}),
    ]
    assert outcome.iterations == 2


@pytest.mark.anyio
async def test_engine_receives_tool_declarations() -> None:
    engine = ScriptedEngine([final("done")])

    await ConversationLoop(engine, make_executor([])).run("system", "user")

    assert engine.tool_names == [["echo", "shout"]]


def test_iteration_cap_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ConversationLoop(ScriptedEngine(), make_executor([]), max_iterations=0)
