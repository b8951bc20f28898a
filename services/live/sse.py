"""Server-Sent-Events stream for one live session."""

from __future__ import annotations

from typing import AsyncIterator, Optional

from services.live.relay import LiveRelay

SSE_HEADERS = {
	"Cache-Control": "no-cache",
	"Connection": "keep-alive",
	"X-Accel-Buffering": "no",
}


async def event_stream(relay: LiveRelay, session_id: str, keepalive_seconds: Optional[float] = None) -> AsyncIterator[str]:
	"""Attach a delivery channel and yield its frames until the client goes away."""
	channel = relay.attach_channel(session_id)
	try:
		async for frame in channel.frames(keepalive_seconds):
			yield frame
	finally:
		relay.detach_channel(session_id, channel)
