"""CLI demonstration of one orchestrated analysis run."""
from __future__ import annotations

import argparse
import asyncio
import json
from typing import List, NoReturn, Optional

from codescope.config import config
from codescope.log import setup_logging
from codescope.runtime import create_orchestrator, get_manager, get_scheduler


async def main(task: str, workspace: Optional[str], wait_timeout: Optional[float]) -> dict:
    orchestrator = create_orchestrator()
    print(f"Orchestrator tools: {', '.join(orchestrator.tool_names)}")

    outcome = await orchestrator.execute(task, workspace, wait_timeout=wait_timeout)
    print(
        f"Finished in state {outcome.state.value} "
        f"with {len(outcome.spawned_agents)} spawned agent(s)"
    )

    summary = get_manager().summary()
    await get_scheduler().shutdown()
    return {"analysis": outcome.to_dict(), "agents": summary}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one codebase analysis task")
    parser.add_argument("task", help="What the agents should analyze")
    parser.add_argument("--workspace", default=None, help="Directory to analyze")
    parser.add_argument(
        "--wait-timeout",
        type=float,
        default=None,
        help="Seconds to wait for spawned agents",
    )
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> NoReturn:
    args = parse_args(argv)
    setup_logging(config.log_level, config.log_dir)
    report = asyncio.run(main(args.task, args.workspace, args.wait_timeout))
    print(json.dumps(report, indent=2, default=str))
    raise SystemExit(0 if report["analysis"]["success"] else 1)


if __name__ == "__main__":
    run()
