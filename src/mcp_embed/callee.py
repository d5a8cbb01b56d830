"""
CalleeSession — the embedded mini-app's side of the protocol.

Must be created inside a running event loop. Listener registrations, the URL
fallback timer and the pending close-request are held in one ExitStack that
is closed exactly once: on host close, after complete()/cancel(), or on
destroy() / leaving the `with` block.
"""

import asyncio
import logging
from contextlib import ExitStack
from typing import Any, Callable, Optional

from statemachine.exceptions import TransitionNotAllowed

from mcp_embed import reporter
from mcp_embed.bus import MessageBus
from mcp_embed.context import (
    DEFAULT_INIT_TIMEOUT_S,
    SOURCE_HOST,
    STANDALONE_GRACE_S,
    ContextResolver,
)
from mcp_embed.errors import DuplicateTerminalTransition, InitTimeout, MalformedMessage
from mcp_embed.fsm import ACTIVE, AWAITING_INIT, CalleeLifecycle
from mcp_embed.models.context import InvocationContext
from mcp_embed.models.envelope import CloseMessage, ControlMessage, InitMessage
from mcp_embed.models.events import CalleeMessage, TransportMode
from mcp_embed.transport.base import Transport
from mcp_embed.transport.detect import create_transport, detect_mode
from mcp_embed.transport.envelope import close_reason, control_command, init_body, parse_host_message
from mcp_embed.transport.window import Event, Window

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITIES = ("progress", "complete", "cancel")
CLOSE_REQUEST_DELAY_S = 0.1

InitCallback = Callable[[InvocationContext], None]
ControlCallback = Callable[[str, Any], None]
CloseCallback = Callable[[str], None]


class CalleeSession:
    def __init__(
        self,
        app_id: str,
        version: str = "1.0.0",
        *,
        window: Optional[Window] = None,
        url: Optional[str] = None,
        transport: Optional[Transport] = None,
        capabilities: Optional[list[str]] = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT_S,
        standalone_grace: float = STANDALONE_GRACE_S,
        close_request_delay: float = CLOSE_REQUEST_DELAY_S,
        debug: bool = False,
    ):
        self.app_id = app_id
        self.version = version
        self.capabilities = list(capabilities) if capabilities is not None else list(DEFAULT_CAPABILITIES)
        if debug:
            logging.getLogger("mcp_embed").setLevel(logging.DEBUG)

        self._loop = asyncio.get_running_loop()
        self._window = window
        self._url = url if url is not None else (window.location if window is not None else "")
        self._close_request_delay = close_request_delay
        self._lifecycle = CalleeLifecycle()
        self._context: Optional[InvocationContext] = None
        self._init_callback: Optional[InitCallback] = None
        self._control_callback: Optional[ControlCallback] = None
        self._close_callback: Optional[CloseCallback] = None
        self._released = False

        if transport is None:
            # an override with no window to honour it degrades to standalone
            transport = create_transport(detect_mode(window, self._url), window)
        self._mode = transport.mode
        self._log("Mode detected: %s", self._mode.value)

        self._bus = MessageBus(transport, app_id)
        self._resolver = ContextResolver(
            self._url,
            self._mode,
            self._activate,
            init_timeout=init_timeout,
            standalone_grace=standalone_grace,
            loop=self._loop,
        )

        # Released in reverse order: timers, listeners, then the bus itself
        self._resources = ExitStack()
        try:
            self._resources.callback(self._bus.destroy)
            self._resources.enter_context(transport.subscribe(self._on_message))
            if window is not None:
                window.add_event_listener("keydown", self._on_keydown)
                self._resources.callback(window.remove_event_listener, "keydown", self._on_keydown)
            self._resources.callback(self._resolver.cancel)

            self._lifecycle.listen()
            if self._mode is not TransportMode.STANDALONE:
                self._bus.announce_ready(reporter.ready_payload(self.version, self.capabilities))
            self._resolver.start()
        except BaseException:
            self._release()
            raise

    def __enter__(self) -> "CalleeSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.destroy()

    def __repr__(self) -> str:
        return f"CalleeSession(app_id={self.app_id!r}, mode={self._mode.value!r}, state={self.state!r})"

    # ==================== state ====================

    @property
    def mode(self) -> TransportMode:
        return self._mode

    @property
    def state(self) -> str:
        return str(self._lifecycle.current_state.value)

    @property
    def context(self) -> Optional[InvocationContext]:
        return self._context

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    @property
    def is_terminal(self) -> bool:
        return bool(self._lifecycle.current_state.final)

    @property
    def is_destroyed(self) -> bool:
        return self._released

    @property
    def resource_id(self) -> Optional[str]:
        return self._context.resource_id if self._context else None

    @property
    def protocol(self) -> str:
        return self._context.protocol if self._context else "standard"

    # ==================== callbacks ====================

    def on_init(self, callback: InitCallback) -> None:
        """Register the init callback; fires right away if already Active."""
        self._init_callback = callback
        if self._context is not None and not self.is_terminal and not self._released:
            callback(self._context)

    def on_control(self, callback: ControlCallback) -> None:
        self._control_callback = callback

    def on_close(self, callback: CloseCallback) -> None:
        self._close_callback = callback

    async def wait_for_init(self, timeout: float = 10.0) -> InvocationContext:
        if self._context is not None:
            return self._context
        try:
            return await asyncio.wait_for(asyncio.shield(self._resolver.resolved), timeout)
        except asyncio.TimeoutError:
            raise InitTimeout(f"No init within {timeout}s") from None

    # ==================== progress ====================

    def send_progress(self, current: float, total: float, message: Optional[str] = None) -> bool:
        return self._send_business(CalleeMessage.PROGRESS, reporter.progress_payload(current, total, message))

    def send_game_progress(
        self,
        score: int,
        lives: int,
        level: Optional[int] = None,
        elapsed_time: Optional[float] = None,
        status: str = "playing",
        fuel: Optional[float] = None,
    ) -> bool:
        payload = reporter.game_progress_payload(score, lives, level, elapsed_time, status, fuel)
        return self._send_business(CalleeMessage.PROGRESS, payload)

    def send_quiz_progress(self, current_question: int, total_questions: int, correct_answers: int = 0) -> bool:
        payload = reporter.quiz_progress_payload(current_question, total_questions, correct_answers)
        return self._send_business(CalleeMessage.PROGRESS, payload)

    def send_video_progress(self, position: float, duration: float, percent: Optional[float] = None) -> bool:
        payload = reporter.video_progress_payload(position, duration, percent)
        return self._send_business(CalleeMessage.PROGRESS, payload)

    # ==================== termination ====================

    def complete(self, data: Any = None) -> bool:
        """Send mcp:complete, then mcp:close-request once the final frame had time to render."""
        if not self._terminate("finish", "complete"):
            return False
        try:
            self._bus.send(CalleeMessage.COMPLETE, reporter.complete_payload(data))
        finally:
            handle = self._loop.call_later(self._close_request_delay, self._close_request_and_release)
            self._resources.callback(handle.cancel)
        return True

    def complete_game(
        self,
        final_score: int,
        completed: bool = True,
        won: Optional[bool] = None,
        high_score: Optional[int] = None,
        level: Optional[int] = None,
        time_elapsed: Optional[float] = None,
        **extra: Any,
    ) -> bool:
        return self.complete(reporter.game_completion_data(
            final_score, completed, won, high_score, level, time_elapsed, **extra,
        ))

    def complete_quiz(
        self,
        score: float,
        passed: bool,
        total_questions: Optional[int] = None,
        correct_answers: Optional[int] = None,
    ) -> bool:
        return self.complete(reporter.quiz_completion_data(score, passed, total_questions, correct_answers))

    def complete_video(self, last_position: float, watched_percent: float, completed: bool) -> bool:
        return self.complete(reporter.video_completion_data(last_position, watched_percent, completed))

    def cancel(self, reason: str = "user_cancelled", data: Any = None) -> bool:
        if not self._terminate("abort", "cancel"):
            return False
        try:
            self._bus.send(CalleeMessage.CANCEL, reporter.cancel_payload(reason, data))
            self._bus.send(CalleeMessage.CLOSE_REQUEST)
        finally:
            self._release()
        return True

    def cancel_with_data(self, reason: str, data: Any) -> bool:
        return self.cancel(reason, data)

    def error(self, code: str, message: str) -> bool:
        if self.is_terminal or self._released:
            self._log("Dropping error %s: session is over", code)
            return False
        return self._bus.send(CalleeMessage.ERROR, reporter.error_payload(code, message))

    def request_close(self) -> bool:
        """Ask the host to tear the surface down without completing."""
        if self.is_terminal or self._released:
            return False
        return self._bus.send(CalleeMessage.CLOSE_REQUEST)

    def destroy(self) -> None:
        self._release()

    # ==================== internals ====================

    def _log(self, message: str, *args: Any) -> None:
        logger.debug("[%s] " + message, self.app_id, *args)

    def _send_business(self, message_type: str, payload: dict[str, Any]) -> bool:
        if self._released or self.state != ACTIVE:
            self._log("Dropping %s in state %s", message_type, self.state)
            return False
        return self._bus.send(message_type, payload)

    def _terminate(self, event: str, operation: str) -> bool:
        if self._released:
            self._log("Ignoring %s(): session destroyed", operation)
            return False
        try:
            self._lifecycle.send(event)
        except TransitionNotAllowed:
            if self.is_terminal:
                duplicate = DuplicateTerminalTransition(
                    f"{operation}() after the session ended", {"state": self.state},
                )
                self._log("%s", duplicate)
            else:
                self._log("Ignoring %s(): session not active (%s)", operation, self.state)
            return False
        return True

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._resources.close()
        self._log("Destroyed")

    def _close_request_and_release(self) -> None:
        self._bus.send(CalleeMessage.CLOSE_REQUEST)
        self._release()

    def _activate(self, context: InvocationContext, source: str) -> None:
        self._lifecycle.accept_init()
        self._context = context
        self._log("Initialized from %s: %s", source, context.to_wire())
        if self._init_callback is not None:
            self._init_callback(context)

    def _on_keydown(self, event: Event) -> None:
        detail = event.data if isinstance(event.data, dict) else {}
        if detail.get("key") == "Escape":
            self.cancel("user_cancelled")

    def _on_message(self, raw: Any) -> None:
        try:
            message = parse_host_message(raw)
            if message is None:
                return
            if self._released:
                return
            if self.is_terminal:
                # Completed, close-request still pending: the host is already tearing down
                if isinstance(message, CloseMessage):
                    self._release()
                return
            if isinstance(message, InitMessage):
                self._handle_init(message)
            elif isinstance(message, ControlMessage):
                self._handle_control(message)
            elif isinstance(message, CloseMessage):
                self._handle_close(message)
        except MalformedMessage as e:
            self._log("Ignoring message: %s", e)

    def _handle_init(self, message: InitMessage) -> None:
        body = init_body(message)
        if self.state == AWAITING_INIT:
            self._resolver.offer_host(body)
            return
        self._refresh(body)

    def _refresh(self, body: dict[str, Any]) -> None:
        """Re-init while Active: token and config only, identity stays."""
        if self._context is None:
            return
        update: dict[str, Any] = {}
        if body.get("token") is not None:
            update["token"] = str(body["token"])
        if isinstance(body.get("config"), dict):
            update["config"] = body["config"]
        self._lifecycle.refresh_init()
        if update:
            self._context = self._context.model_copy(update=update)
        self._log("Re-init from %s refreshed %s", SOURCE_HOST, sorted(update))

    def _handle_control(self, message: ControlMessage) -> None:
        action, params = control_command(message)
        if self.state != ACTIVE:
            self._log("Dropping control %r: session not active (%s)", action, self.state)
            return
        self._log("Control received: %s", action)
        if self._control_callback is not None:
            self._control_callback(action, params)

    def _handle_close(self, message: CloseMessage) -> None:
        reason = close_reason(message)
        self._lifecycle.host_close()
        self._release()
        self._log("Closed by host: %s", reason)
        if self._close_callback is not None:
            self._close_callback(reason)
