"""
Protocol message types — host→callee and callee→host.
"""

from enum import Enum


class TransportMode(str, Enum):
    LAYER = "layer"
    IFRAME = "iframe"
    STANDALONE = "standalone"


class HostMessage:
    """host → callee"""
    INIT = "mcp:init"
    CONTROL = "mcp:control"
    CLOSE = "mcp:close"

    ALL = (INIT, CONTROL, CLOSE)


class CalleeMessage:
    """callee → host"""
    READY = "mcp:ready"
    PROGRESS = "mcp:progress"
    COMPLETE = "mcp:complete"
    CANCEL = "mcp:cancel"
    CLOSE_REQUEST = "mcp:close-request"
    ERROR = "mcp:error"

    # Layer transport announces readiness under its own event name
    LAYER_READY = "mcp:callee-ready"


class ProgressType:
    GAME = "game"
    QUIZ = "quiz"
    VIDEO = "video"
