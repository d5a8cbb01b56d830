"""
Envelope models — the typed JSON unit exchanged between caller and callee.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

# Keys owned by the envelope itself; payload keys never shadow them on the wire
ENVELOPE_KEYS = ("type", "appId", "timestamp")


class Envelope(BaseModel):
    """callee → host envelope. Payload keys are flattened on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    app_id: str = Field(alias="appId")
    timestamp: str
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        message: dict[str, Any] = {"type": self.type, "appId": self.app_id, "timestamp": self.timestamp}
        for key, value in self.payload.items():
            if key not in ENVELOPE_KEYS:
                message[key] = value
        return message


class HostEnvelope(BaseModel):
    """host → callee message. Unknown keys are kept (flat init dialect)."""

    model_config = ConfigDict(extra="allow")

    type: str


class InitMessage(HostEnvelope):
    context: Optional[dict[str, Any]] = None
    payload: Optional[dict[str, Any]] = None


class ControlMessage(HostEnvelope):
    action: Optional[str] = None
    params: Optional[Any] = None
    payload: Optional[Any] = None
    data: Optional[Any] = None


class CloseMessage(HostEnvelope):
    reason: Optional[str] = None
    payload: Optional[Any] = None
    data: Optional[Any] = None
