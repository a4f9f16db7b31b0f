"""Test utilities for ws-debug tests."""

import asyncio
from typing import Any, List


class FakePeer:
    """Stands in for a websocket connection: records what it is sent."""

    def __init__(self, name: str = "peer", fail: bool = False):
        self.name = name
        self.fail = fail
        self.sent: List[Any] = []

    async def send(self, message: Any) -> None:
        if self.fail:
            raise ConnectionError(f"{self.name} is closing")
        self.sent.append(message)

    def __repr__(self) -> str:
        return f"FakePeer({self.name!r})"


async def retry_until(condition, timeout: float = 5.0, interval: float = 0.02,
                      message: str = "Condition not met within timeout") -> None:
    """Poll `condition` until it returns something truthy, or fail after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if condition():
            return
        await asyncio.sleep(interval)
    raise TimeoutError(message)
