"""
Standalone transport — no host; envelopes go to a local diagnostic log.
"""

import logging
from typing import Any

from mcp_embed.models.events import TransportMode
from mcp_embed.transport.base import MessageHandler, Subscription, Transport

logger = logging.getLogger(__name__)


class StandaloneTransport(Transport):
    mode = TransportMode.STANDALONE

    def post(self, message: dict[str, Any]) -> None:
        logger.info("[%s] %s: %s", message.get("appId"), message.get("type"), message)

    def subscribe(self, handler: MessageHandler) -> Subscription:
        return Subscription()
