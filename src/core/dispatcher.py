import asyncio
from logging import Logger
from typing import Any, Awaitable, Callable, Dict, Optional, Set
from core.bounded_queue import BoundedQueue

class Dispatcher:
    """
    Single reader of the queue that fans every item out to its own task.

    The read loop never waits for a spawned task to finish. With a
    max_concurrency cap it does wait for a free slot before reading the next
    item, which pushes back on the queue and from there on the producer.
    Errors raised inside a task stop at the task boundary.
    """

    def __init__(self,
                 queue: BoundedQueue,
                 handler: Callable[[Any], Awaitable[Any]],
                 logger: Logger,
                 max_concurrency: Optional[int] = None):
        self.queue = queue
        self.handler = handler
        self.logger = logger
        self.max_concurrency = max_concurrency or None
        self._slots = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        self._tasks: Set[asyncio.Task] = set()

        self.dispatched = 0
        self.completed = 0
        self.failed = 0

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self):
        """Read the queue until it is closed and drained"""
        self.logger.info(
            f"Dispatcher started (max concurrency: {self.max_concurrency or 'unbounded'})"
        )
        async for item in self.queue:
            if self._slots:
                await self._slots.acquire()
            self.spawn(item)
        self.logger.info("Dispatcher queue drained")

    def spawn(self, item: Any) -> asyncio.Task:
        """Start one independent task for item and return without awaiting it"""
        task = asyncio.create_task(self._run_task(item))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.dispatched += 1
        return task

    async def _run_task(self, item: Any):
        try:
            await self.handler(item)
            self.completed += 1
        except Exception as e:
            self.failed += 1
            self.logger.debug(f"Task for {item} failed: {str(e)}")
        finally:
            if self._slots:
                self._slots.release()

    async def drain(self, timeout: float = 10.0):
        """Wait for in-flight tasks, abandoning whatever is still running at the timeout"""
        if not self._tasks:
            return

        self.logger.info(f"Waiting for {len(self._tasks)} in-flight tasks")
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            self.logger.warning(f"Abandoning {len(pending)} tasks still running after {timeout}s")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    def stats(self) -> Dict[str, int]:
        return {
            'dispatched': self.dispatched,
            'completed': self.completed,
            'failed': self.failed,
            'in_flight': self.in_flight,
        }
