"""
Protocol harness — a caller and a scripted demo game wired together in-process.

Used by `mcp-embed simulate` and by the end-to-end tests.
"""

import asyncio
from typing import Any, Optional

from mcp_embed.callee import CalleeSession
from mcp_embed.caller import CallerOrchestrator, Embedding
from mcp_embed.context import DEFAULT_INIT_TIMEOUT_S
from mcp_embed.models.context import InvocationContext
from mcp_embed.models.events import TransportMode
from mcp_embed.models.session import AppInfo
from mcp_embed.transport.window import Window

DEMO_APP = AppInfo(
    id="demo-arcade",
    name="Demo Arcade",
    endpoint="https://arcade.local/arcade/index.html",
    token="demo-app-token",
    response_type="layer",
)
DEMO_CONTEXT = {
    "customerId": "demo-customer",
    "projectId": "demo-project",
    "userId": "demo-user",
    "resourceId": "demo-resource",
}


class DemoGame:
    """Plays a fixed number of levels, 100 points each, then completes or cancels."""

    def __init__(self, surface: Window, rounds: int = 3, cancel: bool = False, init_timeout: float = DEFAULT_INIT_TIMEOUT_S):
        self.rounds = rounds
        self.cancel = cancel
        self.score = 0
        self._task: Optional[asyncio.Task[None]] = None
        self.callee = CalleeSession(DEMO_APP.id, "1.0.0", window=surface, init_timeout=init_timeout)
        self.callee.on_init(self._start)
        self.callee.on_control(self._control)

    def _start(self, context: InvocationContext) -> None:
        self._task = asyncio.get_running_loop().create_task(self._play())

    def _control(self, action: str, params: Any) -> None:
        if action == "restart":
            self.score = 0

    async def _play(self) -> None:
        for level in range(1, self.rounds + 1):
            await asyncio.sleep(0)
            self.score += 100
            self.callee.send_game_progress(score=self.score, lives=3, level=level)
        if self.cancel:
            self.callee.cancel_with_data("user_cancelled", {"finalScore": self.score})
        else:
            self.callee.complete_game(final_score=self.score, completed=True, won=True, high_score=self.score, level=self.rounds)


async def run_simulation(
    mode: TransportMode = TransportMode.IFRAME,
    *,
    send_init: bool = True,
    cancel: bool = False,
    rounds: int = 3,
    init_timeout: float = DEFAULT_INIT_TIMEOUT_S,
    timeout: float = 10.0,
) -> Embedding:
    """Embed the demo game and wait until the host tears it down."""
    done = asyncio.Event()
    orchestrator = CallerOrchestrator(auto_init=send_init, on_teardown=lambda _e: done.set())
    embedding = orchestrator.embed(
        DEMO_APP,
        DEMO_CONTEXT,
        lambda surface: DemoGame(surface, rounds=rounds, cancel=cancel, init_timeout=init_timeout),
        mode=mode,
    )
    try:
        await asyncio.wait_for(done.wait(), timeout)
    finally:
        orchestrator.teardown()
    return embedding
