"""Background FIFO scheduler that runs spawned workers."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Set

from codescope.core.errors import AgentNotFound, InvalidTransition, SchedulerTaskFailure
from codescope.core.models import AgentStatus, SpawnRequest
from codescope.core.registry import AgentRegistry

logger = logging.getLogger(__name__)


class Runnable(Protocol):
    async def execute(self) -> Any:
        ...


WorkerFactory = Callable[[SpawnRequest], Runnable]


class Scheduler:
    """
    Queue of spawn requests drained by background tasks.

    ``enqueue`` never blocks: it appends the request and, if fewer than
    ``pool_size`` drains are active, starts one. Each drain pops one request
    at a time in FIFO order and awaits its worker before pulling the next,
    so with the default pool size of one, workers start in enqueue order and
    never overlap. A worker that raises is recorded as failed and the drain
    moves on.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        worker_factory: WorkerFactory,
        *,
        pool_size: int = 1,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self._registry = registry
        self._worker_factory = worker_factory
        self._pool_size = pool_size
        self._queue: Deque[SpawnRequest] = deque()
        self._drains: Set[asyncio.Task[None]] = set()
        self._in_flight: Dict[str, SpawnRequest] = {}
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> List[str]:
        return list(self._in_flight)

    @property
    def is_processing(self) -> bool:
        return bool(self._drains)

    def queued(self) -> List[SpawnRequest]:
        return list(self._queue)

    def enqueue(self, agent_id: str, purpose: str, context: Optional[Dict[str, Any]] = None) -> int:
        """Queue a worker run and return its 1-based queue position."""
        loop = asyncio.get_running_loop()
        request = SpawnRequest(agent_id=agent_id, purpose=purpose, context=dict(context or {}))
        self._queue.append(request)
        position = len(self._queue)
        logger.info("Queued %s at position %d: %s", agent_id, position, purpose)
        if len(self._drains) < self._pool_size:
            self._start_drain(loop)
        return position

    def cancel_queued(self) -> int:
        """Drop every request that has not started yet."""
        cancelled = len(self._queue)
        self._queue.clear()
        if cancelled:
            logger.info("Cancelled %d queued agent(s)", cancelled)
        return cancelled

    async def wait_idle(self) -> None:
        """Wait until the queue is empty and no worker is running."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        self.cancel_queued()
        drains = list(self._drains)
        if drains:
            await asyncio.gather(*drains, return_exceptions=True)

    def _start_drain(self, loop: asyncio.AbstractEventLoop) -> None:
        self._idle.clear()
        task = loop.create_task(self._drain())
        self._drains.add(task)
        task.add_done_callback(self._drain_finished)

    def _drain_finished(self, task: asyncio.Task[None]) -> None:
        self._drains.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Queue processing error: %s", task.exception())
        if not self._drains:
            if self._queue:
                self._start_drain(task.get_loop())
            else:
                self._idle.set()

    async def _drain(self) -> None:
        while self._queue:
            request = self._queue.popleft()
            self._in_flight[request.agent_id] = request
            try:
                await self._run(request)
            finally:
                self._in_flight.pop(request.agent_id, None)

    async def _run(self, request: SpawnRequest) -> None:
        logger.info("Executing %s for: %s", request.agent_id, request.purpose)
        try:
            worker = self._worker_factory(request)
            report = await worker.execute()
        except Exception as exc:  # noqa: BLE001
            failure = SchedulerTaskFailure(request.agent_id, exc)
            logger.error("%s", failure, exc_info=exc)
            self._record_failure(request.agent_id, str(exc) or type(exc).__name__)
            return
        logger.info(
            "%s finished. Success: %s",
            request.agent_id,
            getattr(report, "success", None),
        )

    def _record_failure(self, agent_id: str, error: str) -> None:
        try:
            record = self._registry.get(agent_id)
            if record.status.is_terminal:
                return
            if record.status is AgentStatus.INITIALIZING:
                self._registry.mark_running(agent_id)
            self._registry.fail(agent_id, error)
        except (AgentNotFound, InvalidTransition) as exc:
            logger.warning("Could not record failure for %s: %s", agent_id, exc)
