"""
Envelope construction and host-message parsing.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from mcp_embed.errors import MalformedMessage
from mcp_embed.models.envelope import CloseMessage, ControlMessage, Envelope, HostEnvelope, InitMessage
from mcp_embed.models.events import HostMessage

HOST_MODELS: dict[str, type[HostEnvelope]] = {
    HostMessage.INIT: InitMessage,
    HostMessage.CONTROL: ControlMessage,
    HostMessage.CLOSE: CloseMessage,
}


def build_envelope(message_type: str, app_id: str, payload: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build a callee → host envelope as a JSON-ready dict."""
    envelope = Envelope(
        type=message_type,
        app_id=app_id,
        timestamp=datetime.now(timezone.utc).isoformat(),
        payload=payload or {},
    )
    return envelope.to_wire()


def parse_host_message(raw: Any) -> Optional[HostEnvelope]:
    """Parse a host → callee message.

    Returns None for typed messages that are not host messages (e.g. our own
    envelopes echoed back). Raises MalformedMessage for anything untyped.
    """
    if not isinstance(raw, dict):
        raise MalformedMessage("message is not an object", {"received": type(raw).__name__})
    message_type = raw.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MalformedMessage("message has no type")
    model = HOST_MODELS.get(message_type)
    if model is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise MalformedMessage(f"invalid {message_type} message", {"error_count": e.error_count()})


def init_body(message: InitMessage) -> dict[str, Any]:
    """Init context may be under `context`, under `payload`, or flat on the message."""
    if message.context is not None:
        return message.context
    if message.payload is not None:
        return message.payload
    return dict(message.model_extra or {})


def control_command(message: ControlMessage) -> tuple[str, Any]:
    if message.action:
        params = message.params if message.params is not None else message.payload
        return message.action, params if params is not None else {}
    body = message.payload if isinstance(message.payload, dict) else message.data
    if not isinstance(body, dict) or not body.get("action"):
        raise MalformedMessage("control message has no action")
    return body["action"], body.get("params", body)


def close_reason(message: CloseMessage) -> str:
    if message.reason:
        return message.reason
    body = message.payload if isinstance(message.payload, dict) else message.data
    if isinstance(body, dict) and body.get("reason"):
        return str(body["reason"])
    return "unknown"
