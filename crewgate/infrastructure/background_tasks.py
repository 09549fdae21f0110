"""Background Task Registry — supervised fire-and-forget tasks that outlive the request.

Invariants:
    - submit() never awaits the work it schedules
    - Every submitted task is strongly referenced until it finishes (the event loop
      keeps only weak references)
    - A failing task is logged by its done-callback; the exception never reaches the submitter
    - At most one live task per key; a second submit for a running key is refused
    - cancel(key) returns only after the task has stopped
    - drain() on shutdown waits up to a timeout, then cancels and logs stragglers

Design Decisions:
    - asyncio.create_task + done-callback over FastAPI BackgroundTasks: the task is not tied
      to the response cycle and shutdown can wait for it
    - Module singleton initialized by the lifespan, same pattern as db_manager
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundTaskRegistry:
    """Tracks in-flight background tasks for supervision and graceful shutdown."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._by_key: dict[str, asyncio.Task] = {}

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def is_running(self, key: str) -> bool:
        task = self._by_key.get(key)
        return task is not None and not task.done()

    def submit(
        self,
        coro_factory: Callable[[], Awaitable[None]],
        *,
        name: str,
        key: str | None = None,
    ) -> asyncio.Task | None:
        """Schedule coro_factory() on the running loop. Returns None if key is busy."""
        if key is not None and self.is_running(key):
            logger.info(
                f"Task {name} skipped: already running", extra={"task_name": name},
            )
            return None

        task = asyncio.create_task(coro_factory(), name=name)
        self._tasks.add(task)
        if key is not None:
            self._by_key[key] = task

        def _on_done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if key is not None and self._by_key.get(key) is t:
                del self._by_key[key]
            if t.cancelled():
                logger.warning(
                    f"Background task {name} cancelled", extra={"task_name": name},
                )
                return
            exc = t.exception()
            if exc:
                logger.error(
                    f"Background task {name} failed: {exc}",
                    exc_info=exc, extra={"task_name": name},
                )

        task.add_done_callback(_on_done)
        return task

    async def cancel(self, key: str) -> bool:
        """Cancel the running task for key and wait until it has stopped."""
        task = self._by_key.get(key)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return True

    async def drain(self, timeout: float) -> int:
        """Wait for in-flight tasks; cancel what is left after timeout. Returns cancelled count."""
        tasks = [t for t in self._tasks if not t.done()]
        if not tasks:
            return 0
        logger.info(f"Draining {len(tasks)} background tasks (timeout {timeout}s)")
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            logger.warning(
                f"Background task {task.get_name()} cancelled at shutdown",
                extra={"task_name": task.get_name()},
            )
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
        return len(still_running)


# Singleton (initialized on startup)
task_registry: BackgroundTaskRegistry | None = None


def init_task_registry() -> BackgroundTaskRegistry:
    global task_registry
    task_registry = BackgroundTaskRegistry()
    return task_registry


def get_task_registry() -> BackgroundTaskRegistry:
    """FastAPI dependency for the task registry."""
    if not task_registry:
        raise RuntimeError("Task registry not initialized")
    return task_registry
