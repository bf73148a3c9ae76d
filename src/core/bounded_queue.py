import asyncio
from collections import deque
from typing import Any, AsyncIterator, Deque

class QueueClosed(Exception):
    """Raised on put() after close, and on get() once a closed queue is drained"""
    pass

class BoundedQueue:
    """
    Fixed-capacity FIFO between the log feed and the dispatcher.

    put() suspends while the queue is full, so a slow consumer throttles the
    producer instead of items being dropped. close() releases everyone waiting:
    producers get QueueClosed, consumers drain what is left and then see
    end-of-stream.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: Deque[Any] = deque()
        self._condition = asyncio.Condition()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return len(self._items)

    async def put(self, item: Any) -> None:
        async with self._condition:
            while not self._closed and len(self._items) >= self._capacity:
                await self._condition.wait()
            if self._closed:
                raise QueueClosed("queue is closed")
            self._items.append(item)
            self._condition.notify_all()

    async def get(self) -> Any:
        async with self._condition:
            while not self._items and not self._closed:
                await self._condition.wait()
            if not self._items:
                raise QueueClosed("queue is closed and drained")
            item = self._items.popleft()
            self._condition.notify_all()
            return item

    async def close(self) -> None:
        async with self._condition:
            self._closed = True
            self._condition.notify_all()

    async def __aiter__(self) -> AsyncIterator[Any]:
        while True:
            try:
                yield await self.get()
            except QueueClosed:
                return
