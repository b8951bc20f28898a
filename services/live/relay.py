"""In-memory state for live coach sessions.

`LiveRelay` owns the three per-process maps used by the live coach:
realtime connections by session id, the attached SSE delivery channel per
session, and the queue of events produced while no channel is attached.
All mutations run on the event loop without awaiting between check and
update, so no locking is needed.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from models.live_models import EVENT_CONNECTED, ClientEvent, DeliveryOutcome
from services.live.channel import ChannelClosedError, DeliveryChannel
from services.live.connection import LiveConnection

LOGGER = logging.getLogger(__name__)


class LiveRelay:
	"""Session registry, delivery channel registry and message queue store."""

	def __init__(self) -> None:
		self._sessions: Dict[str, LiveConnection] = {}
		self._channels: Dict[str, DeliveryChannel] = {}
		self._queues: Dict[str, List[ClientEvent]] = {}

	# Session registry

	def get_session(self, session_id: str) -> Optional[LiveConnection]:
		return self._sessions.get(session_id)

	def set_session(self, session_id: str, connection: LiveConnection) -> None:
		self._sessions[session_id] = connection

	def remove_session(self, session_id: str, connection: Optional[LiveConnection] = None) -> bool:
		"""Drop the session entry.

		When `connection` is given the entry is only removed if it still
		points at that handle, so a late close from a replaced connection
		cannot evict its successor.
		"""
		current = self._sessions.get(session_id)
		if current is None:
			return False
		if connection is not None and current is not connection:
			return False
		del self._sessions[session_id]
		return True

	def session_ids(self) -> List[str]:
		return list(self._sessions)

	async def clear(self) -> None:
		"""Close every live connection and empty all registries.

		Entries are dropped before closing, so close callbacks fired during
		teardown see the session as already gone and cannot re-queue events.
		"""
		sessions = list(self._sessions.items())
		self._sessions.clear()
		for session_id, connection in sessions:
			try:
				await connection.close()
			except Exception:  # pylint: disable=broad-exception-caught
				LOGGER.exception("Error closing live session %s", session_id)
		for channel in self._channels.values():
			channel.close()
		self._channels.clear()
		self._queues.clear()

	# Delivery channels and queued messages

	def get_channel(self, session_id: str) -> Optional[DeliveryChannel]:
		return self._channels.get(session_id)

	def queued(self, session_id: str) -> List[ClientEvent]:
		"""Return a copy of the events waiting for a channel."""
		return list(self._queues.get(session_id, []))

	def has_queue(self, session_id: str) -> bool:
		return session_id in self._queues

	def ensure_queue(self, session_id: str) -> None:
		self._queues.setdefault(session_id, [])

	def attach_channel(self, session_id: str) -> DeliveryChannel:
		"""Register a new SSE channel and flush pending events into it.

		The `connected` event is pushed first, then queued events in
		insertion order; the queue is emptied in the same step.
		"""
		channel = DeliveryChannel(session_id)
		previous = self._channels.get(session_id)
		self._channels[session_id] = channel
		if previous is not None:
			LOGGER.info("Replacing SSE channel for session %s", session_id)
		channel.push(ClientEvent(type=EVENT_CONNECTED).to_sse())
		for event in self._queues.get(session_id, []):
			channel.push(event.to_sse())
		self._queues[session_id] = []
		LOGGER.info("SSE channel attached for session %s", session_id)
		return channel

	def detach_channel(self, session_id: str, channel: DeliveryChannel) -> None:
		"""Deregister a cancelled stream and drop its pending queue.

		A channel that has already been superseded by a newer attach leaves
		the registry untouched.
		"""
		channel.close()
		if self._channels.get(session_id) is not channel:
			return
		del self._channels[session_id]
		self._queues.pop(session_id, None)
		LOGGER.info("SSE channel detached for session %s", session_id)

	def send_to_client(self, session_id: str, event: ClientEvent) -> DeliveryOutcome:
		"""Push an event to the attached channel, or queue it for later."""
		channel = self._channels.get(session_id)
		if channel is not None:
			try:
				channel.push(event.to_sse())
				return DeliveryOutcome.DELIVERED
			except ChannelClosedError as exc:
				LOGGER.error("Error sending message to client %s: %s", session_id, exc)
		self._queues.setdefault(session_id, []).append(event)
		return DeliveryOutcome.QUEUED

	def send_if_attached(self, session_id: str, event: ClientEvent) -> bool:
		"""Push an event only to a live channel; never queue it.

		Used for events about sessions that are already torn down, which must
		not leave anything behind in the queue store.
		"""
		channel = self._channels.get(session_id)
		if channel is None:
			return False
		try:
			channel.push(event.to_sse())
		except ChannelClosedError as exc:
			LOGGER.info("Dropping event for closed channel %s: %s", session_id, exc)
			return False
		return True
