import asyncio
import base64

import pytest

from utils.errors import (
    AudioEncodingError,
    LiveConnectionError,
    SessionNotConnectedError,
    ValidationError,
)


def _types(relay, session_id):
    return [event.type for event in relay.queued(session_id)]


def test_connect_registers_session_and_relays_open(dispatcher, relay, connection_factory, speech_config):
    result = asyncio.run(dispatcher.connect("A"))

    assert result == {"success": True, "message": "Session connected successfully"}
    assert relay.get_session("A") is connection_factory.created[0]
    assert connection_factory.created[0].speech_config == speech_config
    assert _types(relay, "A") == ["session_opened"]


def test_connect_is_idempotent(dispatcher, relay, connection_factory):
    asyncio.run(dispatcher.connect("A"))
    result = asyncio.run(dispatcher.connect("A"))

    assert result == {"success": True, "message": "Session already connected"}
    assert len(connection_factory.created) == 1


def test_failed_connect_leaves_no_entry(dispatcher, relay, connection_factory):
    connection_factory.options["fail_connect"] = True

    with pytest.raises(LiveConnectionError) as err:
        asyncio.run(dispatcher.connect("A"))

    assert err.value.message == "Failed to connect to live session"
    assert err.value.status_code == 500
    assert relay.get_session("A") is None
    assert connection_factory.created[0].closed


def test_stale_connection_is_replaced(dispatcher, relay, connection_factory):
    asyncio.run(dispatcher.connect("A"))
    connection_factory.created[0].connected = False

    asyncio.run(dispatcher.connect("A"))

    assert len(connection_factory.created) == 2
    assert relay.get_session("A") is connection_factory.created[1]


def test_late_close_from_replaced_connection_keeps_successor(dispatcher, relay, connection_factory):
    asyncio.run(dispatcher.connect("A"))
    old = connection_factory.created[0]
    old.connected = False
    asyncio.run(dispatcher.connect("A"))

    old.callbacks.on_close("stale")

    assert relay.get_session("A") is connection_factory.created[1]
    assert "session_closed" not in _types(relay, "A")


def test_disconnect_closes_and_removes(dispatcher, relay, connection_factory):
    asyncio.run(dispatcher.connect("A"))

    result = asyncio.run(dispatcher.disconnect("A"))

    assert result == {"success": True, "message": "Session disconnected"}
    assert relay.get_session("A") is None
    assert connection_factory.created[0].closed
    assert dispatcher.is_connected("A") is False


def test_disconnect_unknown_session_succeeds(dispatcher):
    assert asyncio.run(dispatcher.disconnect("nobody"))["success"] is True


def test_disconnect_close_failure(dispatcher, relay, connection_factory):
    connection_factory.options["fail_close"] = True
    asyncio.run(dispatcher.connect("A"))

    with pytest.raises(LiveConnectionError) as err:
        asyncio.run(dispatcher.disconnect("A"))

    assert err.value.message == "Failed to disconnect session"
    assert relay.get_session("A") is None


@pytest.mark.parametrize(
    "action, data",
    [
        ("sendText", {"text": "hi"}),
        ("sendAudio", {"audioData": "AAAA"}),
        ("sendVideo", {"videoFrame": {"data": "AAAA", "mimeType": "image/jpeg"}}),
    ],
)
def test_send_without_session_is_rejected(dispatcher, relay, action, data):
    with pytest.raises(SessionNotConnectedError) as err:
        asyncio.run(dispatcher.dispatch(action, "ghost", data))

    assert err.value.status_code == 400
    assert err.value.message == "Session not connected"
    assert relay.get_session("ghost") is None
    assert not relay.has_queue("ghost")


def test_send_text_forwards(dispatcher, connection_factory):
    asyncio.run(dispatcher.connect("A"))

    result = asyncio.run(dispatcher.dispatch("sendText", "A", {"text": "How is my form?"}))

    assert result["success"] is True
    assert connection_factory.created[0].sent == [("text", "How is my form?")]


def test_send_text_requires_text(dispatcher):
    asyncio.run(dispatcher.connect("A"))

    with pytest.raises(ValidationError):
        asyncio.run(dispatcher.dispatch("sendText", "A", {}))


def test_send_audio_decodes_base64(dispatcher, connection_factory):
    asyncio.run(dispatcher.connect("A"))
    pcm = b"\x00\x01\x02\x03pcm"

    asyncio.run(dispatcher.send_audio("A", base64.b64encode(pcm).decode()))

    assert connection_factory.created[0].sent == [("audio", pcm)]


def test_send_audio_rejects_invalid_base64(dispatcher, connection_factory):
    asyncio.run(dispatcher.connect("A"))

    with pytest.raises(AudioEncodingError) as err:
        asyncio.run(dispatcher.send_audio("A", "not-valid-base64"))

    assert err.value.status_code == 500
    assert connection_factory.created[0].sent == []


def test_send_video_forwards_frame_unchanged(dispatcher, connection_factory):
    asyncio.run(dispatcher.connect("A"))
    frame = {"data": "/9j/4AAQ", "mimeType": "image/jpeg"}

    asyncio.run(dispatcher.send_video("A", frame))

    assert connection_factory.created[0].sent == [("video", frame)]


def test_send_failure_is_wrapped(dispatcher, connection_factory):
    connection_factory.options["fail_send"] = True
    asyncio.run(dispatcher.connect("A"))

    with pytest.raises(LiveConnectionError) as err:
        asyncio.run(dispatcher.send_text("A", "hello"))

    assert err.value.message == "Failed to send text"


def test_dispatch_rejects_unknown_action(dispatcher):
    with pytest.raises(ValidationError) as err:
        asyncio.run(dispatcher.dispatch("jump", "A", None))
    assert err.value.message == "Invalid action"


def test_dispatch_requires_session_id(dispatcher):
    with pytest.raises(ValidationError) as err:
        asyncio.run(dispatcher.dispatch("connect", "", None))
    assert err.value.message == "Session ID required"


class TestCallbacks:

    def test_coach_message_is_relayed(self, dispatcher, relay, connection_factory):
        asyncio.run(dispatcher.connect("A"))
        callbacks = connection_factory.created[0].callbacks

        callbacks.on_message({"type": "response.output_text.done", "text": "Straighten your back"})
        callbacks.on_message({"type": "response.created"})

        events = relay.queued("A")
        assert [e.type for e in events] == ["session_opened", "coach_message"]
        assert events[-1].text == "Straighten your back"
        assert events[-1].timestamp.endswith("Z")

    def test_error_is_relayed(self, dispatcher, relay, connection_factory):
        asyncio.run(dispatcher.connect("A"))

        connection_factory.created[0].callbacks.on_error(RuntimeError("quota exceeded"))

        assert relay.queued("A")[-1].type == "error"
        assert relay.queued("A")[-1].message == "quota exceeded"
        assert relay.get_session("A") is not None

    def test_close_removes_session(self, dispatcher, relay, connection_factory):
        asyncio.run(dispatcher.connect("A"))

        connection_factory.created[0].callbacks.on_close("server ended")

        assert relay.get_session("A") is None
        closed = relay.queued("A")[-1]
        assert closed.type == "session_closed"
        assert closed.reason == "server ended"

    def test_events_reach_attached_channel(self, dispatcher, relay, connection_factory):
        channel = relay.attach_channel("A")
        asyncio.run(dispatcher.connect("A"))

        connection_factory.created[0].callbacks.on_message(
            {"type": "response.output_audio_transcript.done", "transcript": "Nice squat"}
        )

        assert relay.queued("A") == []
        assert channel._frames.qsize() == 3


def test_overlapping_connects_keep_one_open_connection(dispatcher, relay, connection_factory):
    async def scenario():
        results = await asyncio.gather(dispatcher.connect("S"), dispatcher.connect("S"))
        still_open = [c for c in connection_factory.created if c.connected]
        await relay.clear()
        return results, still_open

    results, still_open = asyncio.run(scenario())

    assert sorted(r["message"] for r in results) == ["Session already connected", "Session connected successfully"]
    assert len(connection_factory.created) == 2
    assert len(still_open) == 1
    assert all(c.closed for c in connection_factory.created)


class TestRealtimeTeardown:
    """Close callbacks fired by the realtime reader during teardown."""

    def test_clear_leaves_no_queue_behind(self, realtime_dispatcher, relay, realtime_client):
        async def scenario():
            await realtime_dispatcher.connect("A")
            channel = relay.attach_channel("A")
            await relay.clear()
            for _ in range(10):
                await asyncio.sleep(0)
            return channel

        channel = asyncio.run(scenario())

        assert relay.queued("A") == []
        assert not relay.has_queue("A")
        assert relay.get_session("A") is None
        assert channel.closed
        assert realtime_client.sockets[0].closed

    def test_clear_without_channel_leaves_no_queue(self, realtime_dispatcher, relay):
        async def scenario():
            await realtime_dispatcher.connect("A")
            await relay.clear()
            for _ in range(10):
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert not relay.has_queue("A")

    def test_disconnect_does_not_queue_close_event(self, realtime_dispatcher, relay):
        async def scenario():
            await realtime_dispatcher.connect("A")
            await realtime_dispatcher.disconnect("A")
            for _ in range(10):
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert _types(relay, "A") == ["session_opened"]

    def test_disconnect_reports_close_to_attached_stream(self, realtime_dispatcher, relay):
        async def scenario():
            await realtime_dispatcher.connect("A")
            channel = relay.attach_channel("A")
            await realtime_dispatcher.disconnect("A")
            frames = []
            while not channel._frames.empty():
                frames.append(channel._frames.get_nowait())
            return frames

        frames = asyncio.run(scenario())

        assert any('"session_closed"' in frame for frame in frames)
        assert relay.queued("A") == []

    def test_server_side_close_removes_session_and_queues_event(self, realtime_dispatcher, relay, realtime_client):
        async def scenario():
            await realtime_dispatcher.connect("A")
            realtime_client.sockets[0].events.put_nowait(ConnectionError("dropped"))
            for _ in range(10):
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert relay.get_session("A") is None
        assert _types(relay, "A") == ["session_opened", "error", "session_closed"]
        assert relay.queued("A")[-1].reason == "dropped"
