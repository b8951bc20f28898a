"""Writable SSE delivery channel backed by an asyncio queue."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional


class ChannelClosedError(RuntimeError):
	"""Raised when pushing to a channel whose stream has ended."""


class DeliveryChannel:
	"""One attached SSE consumer for a live session.

	Producers call `push` synchronously; the streaming response drains the
	frames with `frames()`. A closed channel rejects further pushes so the
	relay can fall back to queueing.
	"""

	def __init__(self, session_id: str) -> None:
		self.session_id = session_id
		self._frames: asyncio.Queue[Optional[str]] = asyncio.Queue()
		self._closed = False

	@property
	def closed(self) -> bool:
		return self._closed

	def push(self, frame: str) -> None:
		"""Enqueue a preformatted SSE frame for the consumer."""
		if self._closed:
			raise ChannelClosedError(f"Channel for session {self.session_id} is closed")
		self._frames.put_nowait(frame)

	def close(self) -> None:
		"""Stop accepting frames and wake the consumer so the stream ends."""
		if self._closed:
			return
		self._closed = True
		self._frames.put_nowait(None)

	async def frames(self, keepalive_seconds: Optional[float] = None) -> AsyncIterator[str]:
		"""Yield frames until the channel is closed.

		When `keepalive_seconds` is set, an SSE comment line is yielded after
		that much idle time so proxies keep the connection open.
		"""
		while True:
			try:
				if keepalive_seconds:
					frame = await asyncio.wait_for(self._frames.get(), timeout=keepalive_seconds)
				else:
					frame = await self._frames.get()
			except asyncio.TimeoutError:
				yield ": keepalive\n\n"
				continue
			if frame is None:
				return
			yield frame
