"""
Window — in-process model of the execution context a callee is loaded into.

Cross-frame messages (post_message) are JSON-cloned and delivered on a later
loop iteration. Custom events (dispatch_event) are delivered synchronously,
which is what the layer transport relies on.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


class Event:
    __slots__ = ("type", "data", "source")

    def __init__(self, type: str, data: Any = None, source: Optional["Window"] = None):
        self.type = type
        self.data = data
        self.source = source

    def __repr__(self) -> str:
        return f"Event(type={self.type!r})"


Listener = Callable[[Event], None]


class Window:
    def __init__(self, location: str = "about:blank", parent: Optional["Window"] = None, layer: bool = False):
        self.location = location
        self.parent = parent if parent is not None else self
        # Marker set by a native host that loads the callee as an in-process layer
        self.layer = layer
        self.closed = False
        self._listeners: dict[str, list[Listener]] = {}

    @property
    def framed(self) -> bool:
        return self.parent is not self

    @property
    def origin(self) -> str:
        parts = urlsplit(self.location)
        if not parts.scheme or not parts.netloc:
            return "null"
        return f"{parts.scheme}://{parts.netloc}"

    def open_frame(self, location: str) -> "Window":
        """Create a child surface whose parent is this window."""
        return Window(location, parent=self)

    def add_event_listener(self, type: str, listener: Listener) -> None:
        self._listeners.setdefault(type, []).append(listener)

    def remove_event_listener(self, type: str, listener: Listener) -> None:
        try:
            self._listeners.get(type, []).remove(listener)
        except ValueError:
            pass

    def dispatch_event(self, type: str, detail: Any = None, source: Optional["Window"] = None) -> None:
        if self.closed:
            return
        event = Event(type, detail, source)
        for listener in list(self._listeners.get(type, ())):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for %s on %s failed", type, self.location)

    def post_message(self, data: Any, target_origin: str = "*", source: Optional["Window"] = None) -> None:
        """Queue a "message" event on this window. Requires a running loop."""
        if self.closed:
            return
        if target_origin != "*" and target_origin != self.origin:
            logger.debug("post_message to %s dropped: origin %s does not match", self.location, target_origin)
            return
        cloned = json.loads(json.dumps(data))
        asyncio.get_running_loop().call_soon(self._deliver, cloned, source)

    def _deliver(self, data: Any, source: Optional["Window"]) -> None:
        if self.closed:
            logger.debug("Message for closed window %s dropped", self.location)
            return
        self.dispatch_event("message", data, source)

    def close(self) -> None:
        self.closed = True
        self._listeners.clear()
