"""CalleeSession lifecycle: handshake, init race, termination semantics, teardown."""

import asyncio
import logging
from datetime import datetime

import pytest

from mcp_embed import CalleeSession, InitTimeout
from mcp_embed.models.events import CalleeMessage, TransportMode
from mcp_embed.transport.window import Window

from conftest import RecordingTransport, settle

INIT_A = {"type": "mcp:init", "context": {"customer_id": "c1", "user_id": "u1", "resourceId": "r1", "token": "t1"}}


def make_session(transport: RecordingTransport, **kwargs) -> CalleeSession:
    kwargs.setdefault("init_timeout", 5.0)
    return CalleeSession("corporate-arcade", "1.2.0", transport=transport, **kwargs)


class TestHandshake:
    @pytest.mark.asyncio
    async def test_ready_sent_on_construction(self, transport):
        session = make_session(transport, capabilities=["progress", "complete"])
        assert session.state == "awaiting_init"
        assert session.mode is TransportMode.IFRAME
        (ready,) = transport.sent
        assert ready["type"] == CalleeMessage.READY
        assert ready["appId"] == "corporate-arcade"
        assert ready["version"] == "1.2.0"
        assert ready["capabilities"] == ["progress", "complete"]
        assert ready["timestamp"]
        session.destroy()

    @pytest.mark.asyncio
    async def test_default_capabilities(self, transport):
        session = make_session(transport)
        assert transport.sent[0]["capabilities"] == ["progress", "complete", "cancel"]
        session.destroy()

    @pytest.mark.asyncio
    async def test_scenario_a_host_init(self, transport):
        session = make_session(transport)
        contexts = []
        session.on_init(contexts.append)
        transport.deliver(INIT_A)
        assert session.state == "active"
        assert session.is_initialized
        ctx = session.context
        assert (ctx.customer_id, ctx.user_id, ctx.resource_id, ctx.token) == ("c1", "u1", "r1", "t1")
        assert session.resource_id == "r1"
        assert contexts == [ctx]
        session.destroy()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [
        {"type": "mcp:init", "context": {"customerId": "c1", "projectId": "p1", "userId": "u1", "resourceId": "r1", "token": "t1"}},
        {"type": "mcp:init", "payload": {"customer_id": "c1", "project_id": "p1", "user_id": "u1", "resource_id": "r1", "token": "t1"}},
        {"type": "mcp:init", "customerId": "c1", "project_id": "p1", "userId": "u1", "resource_id": "r1", "token": "t1"},
    ])
    async def test_init_dialects_resolve_identically(self, transport, message):
        session = make_session(transport)
        transport.deliver(message)
        ctx = session.context
        assert (ctx.customer_id, ctx.project_id, ctx.user_id, ctx.resource_id, ctx.token) == ("c1", "p1", "u1", "r1", "t1")
        session.destroy()

    @pytest.mark.asyncio
    async def test_on_init_after_active_fires_immediately(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        contexts = []
        session.on_init(contexts.append)
        assert contexts == [session.context]
        session.destroy()


class TestInitFallback:
    @pytest.mark.asyncio
    async def test_scenario_b_url_fallback_at_timeout(self, transport):
        session = make_session(transport, url="https://arcade.local/?userId=u2&resourceId=r2", init_timeout=0.2)
        loop = asyncio.get_running_loop()
        started = loop.time()
        activated_at = []
        session.on_init(lambda ctx: activated_at.append(loop.time()))

        await asyncio.sleep(0.1)
        assert session.state == "awaiting_init"
        await asyncio.sleep(0.2)
        assert session.state == "active"
        assert activated_at[0] - started >= 0.19
        ctx = session.context
        assert (ctx.user_id, ctx.resource_id, ctx.theme, ctx.language) == ("u2", "r2", "dark", "tr")
        assert ctx.mode is TransportMode.IFRAME
        session.destroy()

    @pytest.mark.asyncio
    async def test_default_fallback_never_before_two_seconds(self, transport):
        session = CalleeSession("arcade", transport=transport, url="https://arcade.local/?userId=u2")
        await asyncio.sleep(1.9)
        assert session.state == "awaiting_init"
        await asyncio.sleep(0.3)
        assert session.state == "active"
        assert session.context.user_id == "u2"
        session.destroy()

    @pytest.mark.asyncio
    async def test_host_init_beats_fallback(self, transport):
        session = make_session(transport, url="https://a.local/?userId=url-user", init_timeout=0.05)
        calls = []
        session.on_init(calls.append)
        transport.deliver({"type": "mcp:init", "context": {"userId": "host-user"}})
        await asyncio.sleep(0.1)
        assert [c.user_id for c in calls] == ["host-user"]
        session.destroy()

    @pytest.mark.asyncio
    async def test_late_host_init_only_refreshes(self, transport):
        session = make_session(transport, url="https://a.local/?userId=url-user&resourceId=r", init_timeout=0.05)
        calls = []
        session.on_init(calls.append)
        await asyncio.sleep(0.1)
        transport.deliver({"type": "mcp:init", "context": {"userId": "host-user", "token": "fresh"}})
        assert session.context.user_id == "url-user"
        assert session.context.token == "fresh"
        assert len(calls) == 1
        session.destroy()

    @pytest.mark.asyncio
    async def test_standalone_resolves_after_grace(self, caplog):
        caplog.set_level(logging.INFO, logger="mcp_embed")
        session = CalleeSession("arcade", window=Window("https://arcade.local/?userId=solo"))
        assert session.mode is TransportMode.STANDALONE
        await asyncio.sleep(0.05)
        assert session.state == "awaiting_init"
        await asyncio.sleep(0.1)
        assert session.state == "active"
        assert session.send_progress(1, 10)
        assert "mcp:progress" in caplog.text
        assert "mcp:ready" not in caplog.text
        session.destroy()

    @pytest.mark.asyncio
    async def test_mode_override_without_window_runs_standalone(self, caplog):
        caplog.set_level(logging.INFO, logger="mcp_embed")
        session = CalleeSession("arcade", url="https://arcade.local/?mode=iframe&userId=u3")
        assert session.mode is TransportMode.STANDALONE
        await asyncio.sleep(0.15)
        assert session.state == "active"
        assert session.context.mode is TransportMode.STANDALONE
        assert session.context.user_id == "u3"
        assert "mcp:ready" not in caplog.text
        session.destroy()

    @pytest.mark.asyncio
    async def test_wait_for_init(self, transport):
        session = make_session(transport)
        waiter = asyncio.ensure_future(session.wait_for_init(timeout=1.0))
        await asyncio.sleep(0)
        transport.deliver(INIT_A)
        ctx = await waiter
        assert ctx.user_id == "u1"
        assert await session.wait_for_init() is session.context
        session.destroy()

    @pytest.mark.asyncio
    async def test_wait_for_init_times_out(self, transport):
        session = make_session(transport)
        with pytest.raises(InitTimeout):
            await session.wait_for_init(timeout=0.05)
        # the pending resolution is untouched by the timeout
        transport.deliver(INIT_A)
        assert session.state == "active"
        session.destroy()


class TestReinit:
    @pytest.mark.asyncio
    async def test_reinit_refreshes_token_and_config_only(self, transport):
        session = make_session(transport)
        calls = []
        session.on_init(calls.append)
        transport.deliver(INIT_A)
        session.send_progress(3, 10)
        transport.deliver({"type": "mcp:init", "context": {
            "customerId": "other", "userId": "intruder", "token": "t2", "config": {"theme": "light"},
        }})
        ctx = session.context
        assert (ctx.customer_id, ctx.user_id, ctx.resource_id) == ("c1", "u1", "r1")
        assert ctx.token == "t2"
        assert ctx.config == {"theme": "light"}
        assert session.state == "active"
        assert len(calls) == 1
        assert session.capabilities == ["progress", "complete", "cancel"]
        session.destroy()


class TestBusinessMessages:
    @pytest.mark.asyncio
    async def test_nothing_business_before_active(self, transport):
        session = make_session(transport)
        assert session.send_progress(1, 2) is False
        assert session.send_game_progress(score=1, lives=3) is False
        assert session.complete({"x": 1}) is False
        assert session.cancel() is False
        assert transport.types() == [CalleeMessage.READY]
        assert session.state == "awaiting_init"
        session.destroy()

    @pytest.mark.asyncio
    async def test_progress_envelopes(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        session.send_progress(3, 10, "loading")
        session.send_game_progress(score=150, lives=2, level=2, elapsed_time=45)
        session.send_quiz_progress(2, 5, 1)
        session.send_video_progress(30, 120)
        generic, game, quiz, video = transport.of_type(CalleeMessage.PROGRESS)
        assert generic["data"] == {"current": 3, "total": 10, "message": "loading"}
        assert "progressType" not in generic
        assert game["progressType"] == "game"
        assert game["data"] == {"score": 150, "lives": 2, "level": 2, "elapsedTime": 45, "status": "playing"}
        assert quiz["progressType"] == "quiz"
        assert quiz["data"] == {"currentQuestion": 2, "totalQuestions": 5, "correctAnswers": 1}
        assert video["data"] == {"position": 30, "duration": 120, "percent": 25.0}
        session.destroy()

    @pytest.mark.asyncio
    async def test_error_envelope(self, transport):
        session = make_session(transport)
        assert session.error("asset_missing", "sprite sheet not found")
        (error,) = transport.of_type(CalleeMessage.ERROR)
        assert error["error"] == {"code": "asset_missing", "message": "sprite sheet not found"}
        assert error["appId"] == "corporate-arcade"
        session.destroy()


class TestTermination:
    @pytest.mark.asyncio
    async def test_complete_twice_emits_once(self, transport):
        session = make_session(transport, close_request_delay=0.05)
        transport.deliver(INIT_A)
        assert session.complete_game(final_score=500, won=True, high_score=500, level=5) is True
        assert session.complete({"again": True}) is False
        assert session.state == "completed"
        assert transport.of_type(CalleeMessage.CLOSE_REQUEST) == []
        await asyncio.sleep(0.1)
        assert session.complete() is False
        (complete,) = transport.of_type(CalleeMessage.COMPLETE)
        assert complete["status"] == "completed"
        assert complete["success"] is True
        assert complete["data"]["type"] == "game"
        assert complete["data"]["finalScore"] == 500
        assert complete["data"]["won"] is True
        assert len(transport.of_type(CalleeMessage.CLOSE_REQUEST)) == 1
        assert transport.types()[-2:] == [CalleeMessage.COMPLETE, CalleeMessage.CLOSE_REQUEST]
        assert session.is_destroyed
        assert transport.handlers == []
        assert transport.close_calls == 1

    @pytest.mark.asyncio
    async def test_unserializable_completion_data_still_releases(self):
        host = Window("https://host.local/")
        frame = host.open_frame("https://arcade.local/")
        received = []
        host.add_event_listener("message", lambda e: received.append(e.data["type"]))
        session = CalleeSession("arcade", window=frame, init_timeout=0.01, close_request_delay=0.05)
        await asyncio.sleep(0.05)
        assert session.state == "active"
        assert session.complete({"at": datetime.now()}) is True
        await asyncio.sleep(0.1)
        assert session.state == "completed"
        assert session.is_destroyed
        assert frame._listeners.get("message") == []
        assert received == [CalleeMessage.READY, CalleeMessage.CLOSE_REQUEST]

    @pytest.mark.asyncio
    async def test_unserializable_cancel_data_still_releases(self):
        host = Window("https://host.local/")
        frame = host.open_frame("https://arcade.local/")
        received = []
        host.add_event_listener("message", lambda e: received.append(e.data["type"]))
        session = CalleeSession("arcade", window=frame, init_timeout=0.01)
        await asyncio.sleep(0.05)
        assert session.cancel_with_data("user_cancelled", {"at": datetime.now()}) is True
        assert session.state == "cancelled"
        assert session.is_destroyed
        assert frame._listeners.get("message") == []
        await settle()
        assert received == [CalleeMessage.READY, CalleeMessage.CLOSE_REQUEST]

    @pytest.mark.asyncio
    async def test_scenario_c_cancel_with_data(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        assert session.cancel_with_data("user_cancelled", {"finalScore": 120}) is True
        assert transport.types() == [CalleeMessage.READY, CalleeMessage.CANCEL, CalleeMessage.CLOSE_REQUEST]
        cancel = transport.of_type(CalleeMessage.CANCEL)[0]
        assert cancel["reason"] == "user_cancelled"
        assert cancel["data"] == {"finalScore": 120}
        assert session.state == "cancelled"
        assert session.is_terminal
        assert session.cancel() is False
        assert session.complete() is False
        assert len(transport.sent) == 3

    @pytest.mark.asyncio
    async def test_cancel_then_complete_keeps_first_terminal_state(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        session.cancel()
        session.complete()
        assert session.state == "cancelled"
        assert transport.of_type(CalleeMessage.COMPLETE) == []

    @pytest.mark.asyncio
    async def test_nothing_after_destroy(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        session.destroy()
        session.destroy()
        count = len(transport.sent)
        assert session.send_progress(1, 2) is False
        assert session.send_game_progress(score=1, lives=1) is False
        assert session.complete() is False
        assert session.cancel() is False
        assert session.error("x", "y") is False
        assert session.request_close() is False
        transport.deliver({"type": "mcp:close"})
        assert len(transport.sent) == count
        assert transport.close_calls == 1
        assert transport.handlers == []

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self, transport):
        with pytest.raises(RuntimeError):
            with make_session(transport) as session:
                raise RuntimeError("game crashed")
        assert session.is_destroyed
        assert transport.handlers == []

    @pytest.mark.asyncio
    async def test_request_close(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        assert session.request_close()
        assert transport.types()[-1] == CalleeMessage.CLOSE_REQUEST
        assert session.state == "active"
        session.destroy()


class TestHostClose:
    @pytest.mark.asyncio
    async def test_close_callback_runs_synchronously(self, transport):
        session = make_session(transport)
        transport.deliver(INIT_A)
        seen = []
        session.on_close(lambda reason: seen.append((reason, session.is_destroyed)))
        count = len(transport.sent)
        transport.deliver({"type": "mcp:close", "reason": "navigated_away"})
        assert seen == [("navigated_away", True)]
        assert session.state == "closed_by_host"
        assert len(transport.sent) == count
        assert transport.handlers == []
        assert session.complete() is False
        assert len(transport.sent) == count

    @pytest.mark.asyncio
    async def test_close_while_awaiting_init_cancels_fallback(self, transport):
        session = make_session(transport, init_timeout=0.05)
        reasons = []
        inits = []
        session.on_close(reasons.append)
        session.on_init(inits.append)
        transport.deliver({"type": "mcp:close"})
        await asyncio.sleep(0.1)
        assert reasons == ["unknown"]
        assert inits == []
        assert session.state == "closed_by_host"

    @pytest.mark.asyncio
    async def test_close_during_pending_close_request_releases(self, transport):
        session = make_session(transport, close_request_delay=0.05)
        transport.deliver(INIT_A)
        session.complete()
        transport.deliver({"type": "mcp:close"})
        assert session.is_destroyed
        assert session.state == "completed"
        await asyncio.sleep(0.1)
        assert transport.of_type(CalleeMessage.CLOSE_REQUEST) == []


class TestControl:
    @pytest.mark.asyncio
    async def test_control_before_active_is_dropped(self, transport):
        session = make_session(transport)
        commands = []
        session.on_control(lambda action, params: commands.append((action, params)))
        transport.deliver({"type": "mcp:control", "action": "pause"})
        transport.deliver(INIT_A)
        transport.deliver({"type": "mcp:control", "action": "pause", "payload": {"at": 12}})
        transport.deliver({"type": "mcp:control", "payload": {"action": "mute", "params": {"on": True}}})
        assert commands == [("pause", {"at": 12}), ("mute", {"on": True})]
        session.destroy()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [None, "hello", 7, {}, {"type": None}, {"type": "mcp:control"},
                                     {"type": "mcp:init", "context": 3}, {"type": "mcp:progress"}])
    async def test_malformed_messages_are_ignored(self, transport, raw):
        session = make_session(transport)
        transport.deliver(raw)
        assert session.state == "awaiting_init"
        transport.deliver(INIT_A)
        transport.deliver(raw)
        assert session.state == "active"
        session.destroy()


class TestWindowIntegration:
    @pytest.mark.asyncio
    async def test_escape_key_cancels(self):
        host = Window("https://host.local/")
        frame = host.open_frame("https://arcade.local/")
        received = []
        host.add_event_listener("message", lambda e: received.append(e.data["type"]))
        session = CalleeSession("arcade", window=frame, init_timeout=5.0)
        frame.post_message(INIT_A, source=host)
        await settle()
        assert session.state == "active"
        frame.dispatch_event("keydown", {"key": "a"})
        assert session.state == "active"
        frame.dispatch_event("keydown", {"key": "Escape"})
        assert session.state == "cancelled"
        await settle()
        assert received == [CalleeMessage.READY, CalleeMessage.CANCEL, CalleeMessage.CLOSE_REQUEST]

    @pytest.mark.asyncio
    async def test_layer_init_during_ready(self):
        surface = Window("https://arcade.local/", layer=True)

        def answer_ready(event):
            surface.dispatch_event("mcp:init", {"userId": "layer-user", "token": "t"})

        surface.add_event_listener(CalleeMessage.LAYER_READY, answer_ready)
        session = CalleeSession("arcade", window=surface, init_timeout=0.05)
        assert session.mode is TransportMode.LAYER
        assert session.state == "active"
        contexts = []
        session.on_init(contexts.append)
        assert contexts[0].user_id == "layer-user"
        await asyncio.sleep(0.1)
        assert session.context.user_id == "layer-user"
        session.destroy()

    @pytest.mark.asyncio
    async def test_destroy_removes_window_listeners(self):
        host = Window("https://host.local/")
        frame = host.open_frame("https://arcade.local/")
        session = CalleeSession("arcade", window=frame, init_timeout=5.0)
        session.destroy()
        frame.post_message(INIT_A, source=host)
        frame.dispatch_event("keydown", {"key": "Escape"})
        await settle()
        assert session.state == "awaiting_init"
