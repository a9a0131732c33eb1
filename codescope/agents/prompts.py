"""Persona and kickoff prompts for the orchestrator and its workers."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

ORCHESTRATOR_PERSONA = """You are the Orchestrator of a code-analysis system.
You decompose a developer's goal into focused tasks, gather context with your
tools, and delegate independent sub-tasks to specialized sub-agents with
spawn_agent. Sub-agents run in the background; their results are collected and
returned alongside your final answer, so do not wait for them yourself.
Finish with a clear summary of the actions taken and your findings."""

WORKER_PERSONA = """You are a specialized sub-agent working for the Orchestrator
of a code-analysis system. You have one assigned purpose. Use your tools
precisely and only when needed, never overwrite existing files, and finish with
a clear, structured report of your findings for the Orchestrator."""

WORKER_KICKOFF = (
    "Begin your task now. Analyze the situation, determine what tools you need, "
    "and execute your purpose systematically."
)


def build_orchestrator_prompt(task: str, workspace: Optional[str]) -> str:
    return f"""## Project Context

Project Path: {workspace or "(not provided)"}

## Developer's Goal

{task}

---

Instructions:
1. Start by exploring the project structure
2. Break down the goal into specific tasks
3. Spawn specialized agents if needed for parallel work
4. Use tools strategically to gather context and make informed decisions
5. Validate your reasoning at each step
6. Provide a clear summary of actions taken and results
"""


def build_worker_prompt(
    persona: str,
    agent_id: str,
    purpose: str,
    context: Dict[str, Any],
) -> str:
    sections = [
        persona,
        "---",
        "## Your Assignment",
        f"Agent ID: {agent_id}\nPurpose: {purpose}",
    ]
    instructions = context.get("instructions")
    if instructions:
        sections.append(f"### Additional Instructions:\n{instructions}")
    files = context.get("files")
    if files:
        sections.append("### Files to Focus On:\n" + "\n".join(f"- {name}" for name in files))
    data = context.get("data")
    if data:
        sections.append(f"### Context Data:\n{json.dumps(data, indent=2, default=str)}")
    sections.append(
        "---\n"
        "Remember:\n"
        "- Stay focused on your assigned purpose\n"
        "- Return clear, structured results to the Orchestrator"
    )
    return "\n\n".join(sections)
