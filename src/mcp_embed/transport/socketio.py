"""
Socket.IO transport — the cross-frame channel for a callee running out of process.

Envelopes travel as Socket.IO events named by their type; host messages
arrive the same way. Call connect() before creating the CalleeSession so
that mcp:ready goes out on a live connection.
"""

import asyncio
import logging
from typing import Any, Optional

import socketio

from mcp_embed.errors import TransportError
from mcp_embed.models.events import TransportMode
from mcp_embed.transport.base import MessageHandler, Subscription, Transport

logger = logging.getLogger(__name__)

SOCKETIO_PATH = "/mcp/socket.io/"


class SocketIOTransport(Transport):
    mode = TransportMode.IFRAME

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        socketio_path: str = SOCKETIO_PATH,
        transports: Optional[list[str]] = None,
    ):
        self._url = url
        self._token = token
        self._socketio_path = socketio_path
        self._transports = transports or ["websocket"]
        self._sio: Optional[socketio.AsyncClient] = None
        self._handlers: list[MessageHandler] = []

    @property
    def connected(self) -> bool:
        return self._sio is not None and self._sio.connected

    async def connect(self) -> None:
        if self.connected:
            return

        self._sio = socketio.AsyncClient()

        @self._sio.on("*")
        async def on_any(event: str, data: Any) -> None:
            if isinstance(data, dict) and "type" not in data:
                data = {"type": event, **data}
            for handler in list(self._handlers):
                handler(data)

        await self._sio.connect(
            self._url,
            auth={"token": self._token} if self._token else None,
            transports=self._transports,
            socketio_path=self._socketio_path,
        )

    def post(self, message: dict[str, Any]) -> None:
        """Schedule the emit on the running loop; emit failures are logged."""
        if not self.connected:
            raise TransportError("Socket.IO not connected", {"type": message.get("type")})
        sio = self._sio
        event_type = message["type"]

        async def _do_emit() -> None:
            try:
                await sio.emit(event_type, message)  # type: ignore[union-attr]
            except Exception as e:
                logger.error("Emit failed for %s: %s", event_type, e)

        asyncio.get_running_loop().create_task(_do_emit())

    def subscribe(self, handler: MessageHandler) -> Subscription:
        self._handlers.append(handler)

        def remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

        return Subscription(remove)

    async def disconnect(self) -> None:
        if self._sio:
            await self._sio.disconnect()
            self._sio = None

    def close(self) -> None:
        self._handlers.clear()
