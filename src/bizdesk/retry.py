"""
Bounded retry-with-delay primitive.

Used wherever the client has to wait for a value to show up (the XSRF cookie
after a priming request, mostly). The sleep function is a parameter so tests
can run with a fake clock.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int
    interval: float  # seconds between attempts

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")


async def poll(
    probe: Callable[[], T | None],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
) -> T | None:
    """
    Call *probe* until it returns a truthy value or *policy* runs out.

    Sleeps ``policy.interval`` between attempts, never after the last one.
    Returns the value, or None when every attempt came back empty.
    """
    for attempt in range(policy.attempts):
        value = probe()
        if value:
            return value
        if attempt < policy.attempts - 1:
            await sleep(policy.interval)
    return None
