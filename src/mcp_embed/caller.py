"""
CallerOrchestrator — the host side of the protocol.

Fetches the session from the SessionIssuer, embeds one callee at a time on a
surface (child frame or layer), answers mcp:ready with exactly one mcp:init,
relays control/close, and tears the surface down on complete, cancel or
close-request. Teardown is fire-and-forget; the callee gets no acknowledgment.
"""

import asyncio
import logging
from contextlib import ExitStack
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from mcp_embed.errors import MCPError, SurfaceBusyError
from mcp_embed.issuer import SessionIssuer
from mcp_embed.models.events import CalleeMessage, HostMessage, TransportMode
from mcp_embed.models.session import AppInfo, SessionInit, TokenRefresh
from mcp_embed.transport.window import Event, Window

logger = logging.getLogger(__name__)

DEFAULT_HOST_LOCATION = "https://host.local/"

MessageCallback = Callable[[dict[str, Any]], None]
Runtime = Callable[[Window], Any]

# Events the host listens for on a layer surface
LAYER_EVENTS = (
    CalleeMessage.LAYER_READY,
    CalleeMessage.PROGRESS,
    CalleeMessage.COMPLETE,
    CalleeMessage.CANCEL,
    CalleeMessage.CLOSE_REQUEST,
    CalleeMessage.ERROR,
)


class Embedding:
    """One embedded callee: its surface and the ordered message log."""

    __slots__ = ("app", "mode", "surface", "context", "runtime", "init_sent", "closed", "log")

    def __init__(self, app: AppInfo, mode: TransportMode, surface: Window, context: dict[str, Any]):
        self.app = app
        self.mode = mode
        self.surface = surface
        self.context = context
        self.runtime: Any = None
        self.init_sent = False
        self.closed = False
        self.log: list[tuple[str, dict[str, Any]]] = []

    def __repr__(self) -> str:
        return f"Embedding(app={self.app.id!r}, mode={self.mode.value!r}, closed={self.closed})"

    def received(self, message_type: Optional[str] = None) -> list[dict[str, Any]]:
        return [m for d, m in self.log if d == "in" and (message_type is None or m.get("type") == message_type)]

    def sent(self, message_type: Optional[str] = None) -> list[dict[str, Any]]:
        return [m for d, m in self.log if d == "out" and (message_type is None or m.get("type") == message_type)]


class CallerOrchestrator:
    def __init__(
        self,
        window: Optional[Window] = None,
        issuer: Optional[SessionIssuer] = None,
        *,
        auto_init: bool = True,
        on_message: Optional[MessageCallback] = None,
        on_progress: Optional[MessageCallback] = None,
        on_complete: Optional[MessageCallback] = None,
        on_cancel: Optional[MessageCallback] = None,
        on_error: Optional[MessageCallback] = None,
        on_teardown: Optional[Callable[[Embedding], None]] = None,
    ):
        self.window = window or Window(DEFAULT_HOST_LOCATION)
        self.issuer = issuer
        self.session: Optional[SessionInit] = None
        self._auto_init = auto_init
        self._on_message = on_message
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._on_cancel = on_cancel
        self._on_error = on_error
        self._on_teardown = on_teardown
        self._embedding: Optional[Embedding] = None
        self._listeners = ExitStack()

    @property
    def embedding(self) -> Optional[Embedding]:
        return self._embedding

    @property
    def busy(self) -> bool:
        return self._embedding is not None and not self._embedding.closed

    async def start(self, language: Optional[str] = None) -> SessionInit:
        """Fetch the session and app tokens. Raises UpstreamSessionError; nothing is embedded then."""
        if self.issuer is None:
            raise MCPError("no_issuer", "CallerOrchestrator has no SessionIssuer")
        self.session = await self.issuer.init_session(language=language)
        logger.info("Session %s: %d app(s)", self.session.session.id, len(self.session.apps))
        return self.session

    @staticmethod
    def build_launch_url(app: AppInfo, context: dict[str, Any], mode: Optional[TransportMode] = None) -> str:
        parts = urlsplit(app.endpoint)
        query = dict(parse_qsl(parts.query))
        query["token"] = app.token
        for key in ("resourceId", "userId"):
            if context.get(key):
                query[key] = str(context[key])
        if mode is not None:
            query["mode"] = TransportMode(mode).value
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))

    def embed(
        self,
        app: AppInfo,
        context: dict[str, Any],
        runtime: Optional[Runtime] = None,
        *,
        mode: TransportMode = TransportMode.IFRAME,
    ) -> Embedding:
        """Create the surface, listen on it, then load the callee runtime into it."""
        if self.busy:
            raise SurfaceBusyError(f"{self._embedding.app.id} is still embedded")  # type: ignore[union-attr]
        mode = TransportMode(mode)
        if mode is TransportMode.STANDALONE:
            raise MCPError("invalid_mode", "a callee cannot be embedded in standalone mode")

        url = self.build_launch_url(app, context)
        self._listeners = ExitStack()
        if mode is TransportMode.LAYER:
            surface = Window(url, layer=True)
            for event_type in LAYER_EVENTS:
                surface.add_event_listener(event_type, self._on_layer_event)
                self._listeners.callback(surface.remove_event_listener, event_type, self._on_layer_event)
        else:
            surface = self.window.open_frame(url)
            self.window.add_event_listener("message", self._on_frame_message)
            self._listeners.callback(self.window.remove_event_listener, "message", self._on_frame_message)

        embedding = Embedding(app, mode, surface, context)
        self._embedding = embedding
        logger.info("Embedding %s (%s) at %s", app.id, mode.value, url)
        if runtime is not None:
            embedding.runtime = runtime(surface)
        return embedding

    def control(self, action: str, params: Optional[dict[str, Any]] = None) -> None:
        self._post({"type": HostMessage.CONTROL, "action": action, "params": params or {}})

    def close(self, reason: str = "host_closed") -> None:
        """Send mcp:close, then tear down once it has been delivered."""
        embedding = self._embedding
        if embedding is None or embedding.closed:
            return
        self._post({"type": HostMessage.CLOSE, "reason": reason})
        if embedding.mode is TransportMode.LAYER:
            self.teardown()
        else:
            asyncio.get_running_loop().call_soon(self.teardown)

    async def refresh_token(self, app_id: str) -> TokenRefresh:
        """Refresh an app token; an embedded callee for that app gets a re-init."""
        if self.issuer is None:
            raise MCPError("no_issuer", "CallerOrchestrator has no SessionIssuer")
        result = await self.issuer.refresh_token(app_id)
        embedding = self._embedding
        if embedding is not None and not embedding.closed and embedding.app.id == app_id:
            embedding.app = embedding.app.model_copy(update={"token": result.token})
            self._post(self._init_message(embedding))
        return result

    def teardown(self) -> None:
        embedding = self._embedding
        if embedding is None or embedding.closed:
            return
        embedding.closed = True
        self._listeners.close()
        embedding.surface.close()
        logger.info("Torn down %s", embedding.app.id)
        if self._on_teardown:
            self._on_teardown(embedding)

    # ==================== internals ====================

    def _init_message(self, embedding: Embedding) -> dict[str, Any]:
        context = dict(embedding.context)
        context["token"] = embedding.app.token
        context.setdefault("config", {"theme": "dark"})
        return {"type": HostMessage.INIT, "context": context}

    def _post(self, message: dict[str, Any]) -> None:
        embedding = self._embedding
        if embedding is None or embedding.closed:
            logger.debug("No embedded callee, dropping %s", message["type"])
            return
        embedding.log.append(("out", message))
        if embedding.mode is TransportMode.LAYER:
            embedding.surface.dispatch_event(message["type"], message)
        else:
            embedding.surface.post_message(message, "*", source=self.window)

    def _on_frame_message(self, event: Event) -> None:
        embedding = self._embedding
        if embedding is None or event.source is not embedding.surface:
            return
        self._handle(event.data)

    def _on_layer_event(self, event: Event) -> None:
        self._handle(event.data)

    def _handle(self, message: Any) -> None:
        embedding = self._embedding
        if embedding is None or embedding.closed:
            return
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.debug("Ignoring untyped message from %s", embedding.app.id)
            return
        embedding.log.append(("in", message))
        if self._on_message:
            self._on_message(message)

        message_type = message["type"]
        if message_type == CalleeMessage.READY:
            if self._auto_init and not embedding.init_sent:
                embedding.init_sent = True
                self._post(self._init_message(embedding))
        elif message_type == CalleeMessage.PROGRESS:
            if self._on_progress:
                self._on_progress(message)
        elif message_type == CalleeMessage.COMPLETE:
            if self._on_complete:
                self._on_complete(message)
            self.teardown()
        elif message_type == CalleeMessage.CANCEL:
            if self._on_cancel:
                self._on_cancel(message)
            self.teardown()
        elif message_type == CalleeMessage.CLOSE_REQUEST:
            self.teardown()
        elif message_type == CalleeMessage.ERROR:
            if self._on_error:
                self._on_error(message)
