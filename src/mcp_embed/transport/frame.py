"""
Cross-frame transport — postMessage to the parent window, wildcard target.
"""

import logging
from typing import Any

from mcp_embed.errors import TransportError
from mcp_embed.models.events import TransportMode
from mcp_embed.transport.base import MessageHandler, Subscription, Transport
from mcp_embed.transport.window import Event, Window

logger = logging.getLogger(__name__)


class FrameTransport(Transport):
    mode = TransportMode.IFRAME

    def __init__(self, window: Window):
        self._window = window

    def post(self, message: dict[str, Any]) -> None:
        self._window.parent.post_message(message, "*", source=self._window)

    def subscribe(self, handler: MessageHandler) -> Subscription:
        def listener(event: Event) -> None:
            try:
                self._check_source(event)
            except TransportError as e:
                logger.debug("Ignoring message: %s", e)
                return
            handler(event.data)

        self._window.add_event_listener("message", listener)
        return Subscription(lambda: self._window.remove_event_listener("message", listener))

    def _check_source(self, event: Event) -> None:
        if event.source is not None and event.source is not self._window.parent:
            raise TransportError(
                f"message from {event.source.location} is not from the parent frame",
                {"source": event.source.location},
            )
