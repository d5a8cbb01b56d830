"""
MessageBus — typed sends toward the host over the detected transport.
"""

import logging
from typing import Any, Optional

from mcp_embed.errors import TransportError
from mcp_embed.models.events import CalleeMessage, TransportMode
from mcp_embed.transport.base import Transport
from mcp_embed.transport.envelope import build_envelope

logger = logging.getLogger(__name__)


class MessageBus:
    def __init__(self, transport: Transport, app_id: str):
        self._transport = transport
        self._app_id = app_id
        self._destroyed = False

    @property
    def mode(self) -> TransportMode:
        return self._transport.mode

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def send(self, message_type: str, payload: Optional[dict[str, Any]] = None) -> bool:
        """Post one envelope. Returns False when it was dropped."""
        if self._destroyed:
            logger.debug("[%s] Dropping %s: bus destroyed", self._app_id, message_type)
            return False
        envelope = build_envelope(message_type, self._app_id, payload)
        try:
            self._transport.post(envelope)
        except TransportError as e:
            logger.warning("[%s] Failed to send %s: %s", self._app_id, message_type, e)
            return False
        except (TypeError, ValueError) as e:
            # payload did not survive the JSON clone
            logger.warning("[%s] Dropping %s: payload is not JSON-serializable: %s", self._app_id, message_type, e)
            return False
        logger.debug("[%s] Sent %s", self._app_id, message_type)
        return True

    def announce_ready(self, payload: dict[str, Any]) -> bool:
        if self._destroyed:
            return False
        envelope = build_envelope(CalleeMessage.READY, self._app_id, payload)
        try:
            self._transport.announce_ready(envelope)
        except TransportError as e:
            logger.warning("[%s] Failed to announce ready: %s", self._app_id, e)
            return False
        return True

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._transport.close()
