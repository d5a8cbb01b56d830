import asyncio
from typing import Any

import pytest

from mcp_embed.models.events import TransportMode
from mcp_embed.transport.base import Subscription, Transport


class RecordingTransport(Transport):
    """Transport double: records posted envelopes, lets tests play the host."""

    def __init__(self, mode: TransportMode = TransportMode.IFRAME):
        self.mode = mode
        self.sent: list[dict[str, Any]] = []
        self.handlers: list = []
        self.close_calls = 0

    def post(self, message: dict[str, Any]) -> None:
        self.sent.append(message)

    def subscribe(self, handler) -> Subscription:
        self.handlers.append(handler)
        return Subscription(lambda: self.handlers.remove(handler))

    def close(self) -> None:
        self.close_calls += 1

    def deliver(self, message: Any) -> None:
        for handler in list(self.handlers):
            handler(message)

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["type"] == message_type]


async def settle(turns: int = 5) -> None:
    """Let queued post_message deliveries run."""
    for _ in range(turns):
        await asyncio.sleep(0)


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()
