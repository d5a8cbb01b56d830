"""
mcp-embed — embed mini-apps in a host and talk to them over the MCP message protocol.

Callee side: CalleeSession (handshake, context resolution, lifecycle).
Caller side: CallerOrchestrator + SessionIssuer client.
"""

from mcp_embed.callee import CalleeSession
from mcp_embed.caller import CallerOrchestrator, Embedding
from mcp_embed.context import ContextResolver, context_from_url, normalize_context
from mcp_embed.errors import (
    MCPError,
    TransportError,
    MalformedMessage,
    InitTimeout,
    DuplicateTerminalTransition,
    UpstreamSessionError,
    SurfaceBusyError,
)
from mcp_embed.issuer import SessionIssuer
from mcp_embed.models.context import InvocationContext
from mcp_embed.models.events import CalleeMessage, HostMessage, ProgressType, TransportMode
from mcp_embed.transport.window import Window

__version__ = "0.1.0"
__all__ = [
    "CalleeSession",
    "CallerOrchestrator",
    "Embedding",
    "ContextResolver",
    "context_from_url",
    "normalize_context",
    "SessionIssuer",
    "InvocationContext",
    "Window",
    "MCPError",
    "TransportError",
    "MalformedMessage",
    "InitTimeout",
    "DuplicateTerminalTransition",
    "UpstreamSessionError",
    "SurfaceBusyError",
    "CalleeMessage",
    "HostMessage",
    "ProgressType",
    "TransportMode",
]
