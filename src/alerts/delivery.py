import asyncio
from typing import Awaitable, Callable

class DeliveryPolicy:
    """Base class for notification delivery policies"""

    async def send(self, attempt: Callable[[], Awaitable[bool]]) -> bool:
        """Run attempt according to the policy, return whether it got through"""
        raise NotImplementedError

class SingleAttemptDelivery(DeliveryPolicy):
    """Best effort: one try, no retry"""

    async def send(self, attempt: Callable[[], Awaitable[bool]]) -> bool:
        return await attempt()

class RetryingDelivery(DeliveryPolicy):
    """Bounded retry with exponential backoff"""

    def __init__(self, max_attempts: int = 3, backoff_seconds: float = 1.0):
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    async def send(self, attempt: Callable[[], Awaitable[bool]]) -> bool:
        for n in range(self.max_attempts):
            if await attempt():
                return True
            if n < self.max_attempts - 1:
                await asyncio.sleep(self.backoff_seconds * (2 ** n))
        return False

def build_delivery_policy(name: str, max_attempts: int = 3, backoff_seconds: float = 1.0) -> DeliveryPolicy:
    if name == 'single':
        return SingleAttemptDelivery()
    if name == 'retry':
        return RetryingDelivery(max_attempts, backoff_seconds)
    raise ValueError(f"Unknown delivery policy: {name}")
