"""
Transport interface shared by the layer, frame, standalone and Socket.IO channels.
"""

from typing import Any, Callable, Optional

from mcp_embed.models.events import TransportMode

MessageHandler = Callable[[Any], None]


class Subscription:
    """An owned listener registration. close() releases it exactly once."""

    def __init__(self, release: Optional[Callable[[], None]] = None):
        self._release = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def close(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class Transport:
    mode: TransportMode

    def post(self, message: dict[str, Any]) -> None:
        raise NotImplementedError

    def announce_ready(self, message: dict[str, Any]) -> None:
        self.post(message)

    def subscribe(self, handler: MessageHandler) -> Subscription:
        raise NotImplementedError

    def close(self) -> None:
        pass
