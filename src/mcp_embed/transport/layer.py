"""
Layer transport — in-process custom events on the shared surface.

The host dispatches mcp:init / mcp:control / mcp:close events whose detail is
the message JSON; the callee dispatches one event per envelope, named by its
type. Readiness is announced as mcp:callee-ready.
"""

import json
from typing import Any

from mcp_embed.models.events import CalleeMessage, HostMessage, TransportMode
from mcp_embed.transport.base import MessageHandler, Subscription, Transport
from mcp_embed.transport.window import Event, Window


class LayerTransport(Transport):
    mode = TransportMode.LAYER

    def __init__(self, window: Window):
        self._window = window

    def post(self, message: dict[str, Any]) -> None:
        self._window.dispatch_event(message["type"], json.loads(json.dumps(message)))

    def announce_ready(self, message: dict[str, Any]) -> None:
        self._window.dispatch_event(CalleeMessage.LAYER_READY, json.loads(json.dumps(message)))

    def subscribe(self, handler: MessageHandler) -> Subscription:
        def listener(event: Event) -> None:
            detail = event.data
            # Hosts may dispatch the bare body (e.g. just the context) as detail
            if isinstance(detail, dict) and "type" not in detail:
                detail = {"type": event.type, **detail}
            handler(detail)

        for message_type in HostMessage.ALL:
            self._window.add_event_listener(message_type, listener)

        def release() -> None:
            for message_type in HostMessage.ALL:
                self._window.remove_event_listener(message_type, listener)

        return Subscription(release)
