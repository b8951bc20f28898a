"""Route live coach actions to realtime connections and relay AI events back."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Optional

from models.live_models import (
	EVENT_COACH_MESSAGE,
	EVENT_ERROR,
	EVENT_SESSION_CLOSED,
	EVENT_SESSION_OPENED,
	ClientEvent,
	LiveCallbacks,
	SpeechConfig,
	utc_timestamp,
)
from services.live.connection import ConnectionFactory, LiveConnection
from services.live.event_parser import extract_text_part
from services.live.relay import LiveRelay
from utils.errors import (
	AudioEncodingError,
	LiveConnectionError,
	SessionNotConnectedError,
	ValidationError,
)

LOGGER = logging.getLogger(__name__)

ACTIONS = ("connect", "disconnect", "sendText", "sendAudio", "sendVideo")


class LiveSessionDispatcher:
	"""Execute connect/disconnect/send actions against the session registry."""

	def __init__(self, relay: LiveRelay, connection_factory: ConnectionFactory, speech_config: SpeechConfig) -> None:
		self.relay = relay
		self.connection_factory = connection_factory
		self.speech_config = speech_config

	async def dispatch(self, action: Optional[str], session_id: Optional[str], data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
		"""Run one client action and return the success payload."""
		if action not in ACTIONS:
			raise ValidationError("Invalid action")
		if not session_id:
			raise ValidationError("Session ID required")
		data = data or {}
		if action == "connect":
			return await self.connect(session_id)
		if action == "disconnect":
			return await self.disconnect(session_id)
		if action == "sendText":
			return await self.send_text(session_id, data.get("text"))
		if action == "sendAudio":
			return await self.send_audio(session_id, data.get("audioData"))
		return await self.send_video(session_id, data.get("videoFrame"))

	def is_connected(self, session_id: str) -> bool:
		connection = self.relay.get_session(session_id)
		return bool(connection and connection.is_connected())

	async def connect(self, session_id: str) -> Dict[str, Any]:
		"""Open a realtime connection for the session unless one is already live."""
		if self.is_connected(session_id):
			return {"success": True, "message": "Session already connected"}

		holder: Dict[str, LiveConnection] = {}
		connection = self.connection_factory(self._callbacks(session_id, holder))
		holder["connection"] = connection
		try:
			await connection.connect(self.speech_config)
		except Exception as exc:
			LOGGER.exception("Failed to connect session %s", session_id)
			await self._discard(session_id, connection)
			raise LiveConnectionError("Failed to connect to live session") from exc

		if self.is_connected(session_id):
			# An overlapping connect for the same id finished first.
			LOGGER.info("Session %s connected concurrently; closing duplicate connection", session_id)
			await self._discard(session_id, connection)
			return {"success": True, "message": "Session already connected"}

		self.relay.set_session(session_id, connection)
		LOGGER.info("Session %s connected", session_id)
		return {"success": True, "message": "Session connected successfully"}

	async def disconnect(self, session_id: str) -> Dict[str, Any]:
		connection = self.relay.get_session(session_id)
		if connection is not None:
			self.relay.remove_session(session_id)
			try:
				await connection.close()
			except Exception as exc:
				LOGGER.exception("Failed to disconnect session %s", session_id)
				raise LiveConnectionError("Failed to disconnect session") from exc
			LOGGER.info("Session %s disconnected", session_id)
		return {"success": True, "message": "Session disconnected"}

	async def send_text(self, session_id: str, text: Optional[str]) -> Dict[str, Any]:
		connection = self._require_connected(session_id)
		if not text:
			raise ValidationError("Text is required")
		await self._forward(session_id, "text", connection.send_text(text))
		return {"success": True, "message": "Text sent successfully"}

	async def send_audio(self, session_id: str, audio_b64: Optional[str]) -> Dict[str, Any]:
		connection = self._require_connected(session_id)
		if not audio_b64:
			raise ValidationError("Audio data is required")
		try:
			audio = base64.b64decode(audio_b64, validate=True)
		except (binascii.Error, ValueError) as exc:
			LOGGER.error("Invalid audio payload for session %s: %s", session_id, exc)
			raise AudioEncodingError("Failed to decode audio data") from exc
		await self._forward(session_id, "audio", connection.send_audio(audio))
		return {"success": True, "message": "Audio sent successfully"}

	async def send_video(self, session_id: str, frame: Optional[Dict[str, Any]]) -> Dict[str, Any]:
		connection = self._require_connected(session_id)
		if not frame:
			raise ValidationError("Video frame is required")
		await self._forward(session_id, "video frame", connection.send_video(frame))
		return {"success": True, "message": "Video frame sent successfully"}

	def _require_connected(self, session_id: str) -> LiveConnection:
		connection = self.relay.get_session(session_id)
		if connection is None or not connection.is_connected():
			raise SessionNotConnectedError()
		return connection

	async def _forward(self, session_id: str, kind: str, send) -> None:
		try:
			await send
		except Exception as exc:
			LOGGER.exception("Failed to send %s for session %s", kind, session_id)
			raise LiveConnectionError(f"Failed to send {kind}") from exc

	async def _discard(self, session_id: str, connection: LiveConnection) -> None:
		"""Close a connection that never made it into the registry."""
		try:
			await connection.close()
		except Exception:  # pylint: disable=broad-exception-caught
			LOGGER.exception("Error closing failed connection for session %s", session_id)

	def _callbacks(self, session_id: str, holder: Dict[str, LiveConnection]) -> LiveCallbacks:
		relay = self.relay

		def on_open() -> None:
			LOGGER.info("Session %s opened", session_id)
			relay.send_to_client(session_id, ClientEvent(type=EVENT_SESSION_OPENED))

		def on_message(event: Any) -> None:
			text = extract_text_part(event)
			if text:
				relay.send_to_client(
					session_id,
					ClientEvent(type=EVENT_COACH_MESSAGE, text=text, timestamp=utc_timestamp()),
				)

		def on_error(error: Exception) -> None:
			LOGGER.error("Session %s error: %s", session_id, error)
			relay.send_to_client(session_id, ClientEvent(type=EVENT_ERROR, message=str(error)))

		def on_close(reason: Optional[str]) -> None:
			LOGGER.info("Session %s closed: %s", session_id, reason)
			event = ClientEvent(type=EVENT_SESSION_CLOSED, reason=reason)
			if relay.remove_session(session_id, holder.get("connection")):
				relay.send_to_client(session_id, event)
			else:
				# Handle was already disconnected, cleared or replaced.
				relay.send_if_attached(session_id, event)

		return LiveCallbacks(on_open=on_open, on_message=on_message, on_error=on_error, on_close=on_close)
