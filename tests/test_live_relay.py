"""Tests for the live relay registries and the SSE delivery primitive.

Covers:
  - queue vs immediate delivery outcomes
  - FIFO flush on attach and queue clearing
  - detach semantics (dropped queue, superseded channels)
  - bulk clear, including close failures
"""

import asyncio
import json

import pytest

from models.live_models import ClientEvent, DeliveryOutcome
from services.live.channel import ChannelClosedError, DeliveryChannel


def _drain(channel: DeliveryChannel):
    """Return the JSON payloads currently buffered in a channel."""
    frames = []
    while not channel._frames.empty():
        frame = channel._frames.get_nowait()
        if frame is None:
            break
        frames.append(json.loads(frame[len("data: "):].strip()))
    return frames


class TestSendToClient:

    def test_queues_when_no_channel(self, relay):
        outcome = relay.send_to_client("s1", ClientEvent(type="coach_message", text="hi"))
        assert outcome is DeliveryOutcome.QUEUED
        assert [e.text for e in relay.queued("s1")] == ["hi"]

    def test_delivers_to_attached_channel(self, relay):
        channel = relay.attach_channel("s1")
        _drain(channel)
        outcome = relay.send_to_client("s1", ClientEvent(type="coach_message", text="live"))
        assert outcome is DeliveryOutcome.DELIVERED
        assert _drain(channel) == [{"type": "coach_message", "text": "live"}]
        assert relay.queued("s1") == []

    def test_falls_back_to_queue_when_channel_dead(self, relay):
        channel = relay.attach_channel("s1")
        channel.close()
        outcome = relay.send_to_client("s1", ClientEvent(type="error", message="boom"))
        assert outcome is DeliveryOutcome.QUEUED
        assert [e.message for e in relay.queued("s1")] == ["boom"]

    def test_queue_is_unbounded(self, relay):
        for i in range(500):
            relay.send_to_client("s1", ClientEvent(type="coach_message", text=str(i)))
        assert len(relay.queued("s1")) == 500

    def test_sse_frame_omits_absent_fields(self):
        frame = ClientEvent(type="session_closed", reason="bye").to_sse()
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[6:]) == {"type": "session_closed", "reason": "bye"}


class TestAttachDetach:

    def test_attach_flushes_queue_in_order_after_connected(self, relay):
        for text in ("one", "two", "three"):
            relay.send_to_client("s1", ClientEvent(type="coach_message", text=text))
        channel = relay.attach_channel("s1")
        payloads = _drain(channel)
        assert payloads[0] == {"type": "connected"}
        assert [p["text"] for p in payloads[1:]] == ["one", "two", "three"]
        assert relay.queued("s1") == []

    def test_second_attach_replaces_first(self, relay):
        first = relay.attach_channel("s1")
        second = relay.attach_channel("s1")
        assert relay.get_channel("s1") is second
        relay.detach_channel("s1", first)
        assert relay.get_channel("s1") is second
        assert first.closed

    def test_detach_drops_pending_queue(self, relay):
        channel = relay.attach_channel("s1")
        relay.detach_channel("s1", channel)
        relay.send_to_client("s1", ClientEvent(type="coach_message", text="late"))
        assert relay.get_channel("s1") is None
        assert [e.text for e in relay.queued("s1")] == ["late"]
        other = relay.attach_channel("s1")
        relay.detach_channel("s1", other)
        assert not relay.has_queue("s1")

    def test_closed_channel_rejects_push(self):
        channel = DeliveryChannel("s1")
        channel.close()
        with pytest.raises(ChannelClosedError):
            channel.push("data: {}\n\n")


class TestClear:

    def test_clear_empties_everything_despite_close_failures(self, relay, connection_factory):
        factory = connection_factory
        failing = factory(None)
        failing.fail_close = True
        healthy = factory(None)
        relay.set_session("a", failing)
        relay.set_session("b", healthy)
        channel = relay.attach_channel("a")
        relay.send_to_client("c", ClientEvent(type="coach_message", text="queued"))

        asyncio.run(relay.clear())

        assert relay.session_ids() == []
        assert relay.get_channel("a") is None
        assert not relay.has_queue("c")
        assert failing.closed and healthy.closed
        assert channel.closed

    def test_remove_session_ignores_replaced_handle(self, relay, connection_factory):
        factory = connection_factory
        old, new = factory(None), factory(None)
        relay.set_session("s1", new)
        assert relay.remove_session("s1", old) is False
        assert relay.get_session("s1") is new
        assert relay.remove_session("s1", new) is True


class TestSendIfAttached:

    def test_pushes_to_live_channel(self, relay):
        channel = relay.attach_channel("s1")
        _drain(channel)
        assert relay.send_if_attached("s1", ClientEvent(type="session_closed", reason="bye")) is True
        assert _drain(channel) == [{"type": "session_closed", "reason": "bye"}]

    def test_never_queues(self, relay):
        assert relay.send_if_attached("s1", ClientEvent(type="session_closed")) is False
        assert not relay.has_queue("s1")
        channel = relay.attach_channel("s1")
        channel.close()
        assert relay.send_if_attached("s1", ClientEvent(type="session_closed")) is False
        assert relay.queued("s1") == []
