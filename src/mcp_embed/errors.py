"""
mcp-embed error types — protocol fault taxonomy.

Callee-side faults are raised inside the handlers and absorbed at the
handler boundary; only InitTimeout and UpstreamSessionError reach callers.
"""

from typing import Any, Optional


class MCPError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class TransportError(MCPError):
    """Message arrived on an unexpected channel."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_error", message, details)


class MalformedMessage(MCPError):
    """Incoming message without a type or with an unusable shape."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("malformed_message", message, details)


class InitTimeout(MCPError):
    def __init__(self, message: str = "Init timeout"):
        super().__init__("init_timeout", message)


class DuplicateTerminalTransition(MCPError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("duplicate_terminal_transition", message, details)


class UpstreamSessionError(MCPError):
    def __init__(self, message: str, code: str = "upstream_session_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class SurfaceBusyError(MCPError):
    def __init__(self, message: str):
        super().__init__("surface_busy", message)
