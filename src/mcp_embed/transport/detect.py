"""
Transport detection — decided once per session.

Order: explicit ?mode=layer|iframe in the invocation URL, then the
enclosing container (layer marker, then parent frame), else standalone.
"""

from typing import Optional
from urllib.parse import parse_qs, urlsplit

from mcp_embed.models.events import TransportMode
from mcp_embed.transport.base import Transport
from mcp_embed.transport.frame import FrameTransport
from mcp_embed.transport.layer import LayerTransport
from mcp_embed.transport.standalone import StandaloneTransport
from mcp_embed.transport.window import Window

MODE_PARAM = "mode"
OVERRIDE_MODES = {TransportMode.LAYER.value, TransportMode.IFRAME.value}


def mode_override(url: str) -> Optional[TransportMode]:
    values = parse_qs(urlsplit(url).query).get(MODE_PARAM)
    if values and values[0] in OVERRIDE_MODES:
        return TransportMode(values[0])
    return None


def detect_mode(window: Optional[Window], url: Optional[str] = None) -> TransportMode:
    location = url if url is not None else (window.location if window is not None else "")
    override = mode_override(location)
    if override is not None:
        return override
    if window is not None:
        if window.layer:
            return TransportMode.LAYER
        if window.framed:
            return TransportMode.IFRAME
    return TransportMode.STANDALONE


def create_transport(mode: TransportMode, window: Optional[Window]) -> Transport:
    if window is None or mode is TransportMode.STANDALONE:
        return StandaloneTransport()
    if mode is TransportMode.LAYER:
        return LayerTransport(window)
    return FrameTransport(window)
