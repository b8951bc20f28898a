"""Live coach connection over the OpenAI Realtime API."""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from models.live_models import LiveCallbacks, SpeechConfig
from services.live.event_parser import event_type, extract_error_message
from services.live.prompts import coach_instructions, coach_opening_prompt

LOGGER = logging.getLogger(__name__)


def _transcription_language(language_code: str) -> str:
	"""Map a BCP-47 tag such as 'en-US' to the ISO-639-1 code transcription expects."""
	return (language_code or "en").split("-", 1)[0].lower()


def frame_to_data_url(frame: Dict[str, Any]) -> str:
	"""Build an image data URL from a `{data, mimeType}` video frame."""
	data = frame.get("data") if isinstance(frame, dict) else None
	if not data:
		raise ValueError("Video frame must include base64 'data'.")
	mime_type = frame.get("mimeType") or frame.get("mime_type") or "image/jpeg"
	return f"data:{mime_type};base64,{data}"


class OpenAILiveConnection:
	"""Realtime websocket session that reports server events through callbacks."""

	def __init__(
		self,
		client: AsyncOpenAI,
		callbacks: LiveCallbacks,
		*,
		model: str = "gpt-realtime",
		connect_timeout: float = 30.0,
		close_timeout: float = 5.0,
	) -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.callbacks = callbacks
		self.model = model
		self.connect_timeout = connect_timeout
		self.close_timeout = close_timeout
		self._connection = None
		self._reader: Optional[asyncio.Task] = None

	async def connect(self, speech_config: SpeechConfig) -> None:
		"""Open the websocket, configure the session and send the opening prompt."""
		LOGGER.info("Connecting to realtime model %s", self.model)
		manager = self.client.realtime.connect(model=self.model)
		try:
			connection = await asyncio.wait_for(manager.enter(), timeout=self.connect_timeout)
		except asyncio.TimeoutError as exc:
			raise RuntimeError(f"Connection timeout after {self.connect_timeout:.0f} seconds") from exc

		try:
			await connection.session.update(
				session={
					"type": "realtime",
					"output_modalities": ["text"],
					"instructions": coach_instructions(speech_config.language_code),
					"audio": {
						"input": {
							"format": {"type": "audio/pcm", "rate": 24000},
							"transcription": {
								"model": "whisper-1",
								"language": _transcription_language(speech_config.language_code),
							},
						},
						"output": {"voice": speech_config.voice_name},
					},
				}
			)
		except Exception:
			await connection.close()
			raise

		self._connection = connection
		self.callbacks.on_open()
		self._reader = asyncio.create_task(self._read_events(connection))
		await self.send_text(coach_opening_prompt())

	async def _read_events(self, connection) -> None:
		reason: Optional[str] = "Session ended"
		try:
			async for event in connection:
				if event_type(event) == "error":
					self.callbacks.on_error(RuntimeError(extract_error_message(event)))
					continue
				self.callbacks.on_message(event)
		except asyncio.CancelledError:
			raise
		except Exception as exc:  # pylint: disable=broad-exception-caught
			LOGGER.error("Realtime stream failed: %s", exc)
			self.callbacks.on_error(exc)
			reason = str(exc) or reason
		if self._connection is connection:
			self._connection = None
		self.callbacks.on_close(reason)

	def _require_connection(self):
		if self._connection is None:
			raise RuntimeError("Session not connected")
		return self._connection

	async def send_text(self, text: str) -> None:
		connection = self._require_connection()
		await connection.conversation.item.create(
			item={"type": "message", "role": "user", "content": [{"type": "input_text", "text": text}]}
		)
		await connection.response.create()

	async def send_audio(self, audio: bytes) -> None:
		"""Append raw PCM16 audio to the input buffer."""
		connection = self._require_connection()
		await connection.input_audio_buffer.append(audio=base64.b64encode(audio).decode("ascii"))

	async def send_video(self, frame: Dict[str, Any]) -> None:
		connection = self._require_connection()
		await connection.conversation.item.create(
			item={
				"type": "message",
				"role": "user",
				"content": [{"type": "input_image", "image_url": frame_to_data_url(frame)}],
			}
		)

	async def close(self) -> None:
		"""Close the websocket and wait for the reader to fire `on_close`.

		A reader that has not stopped within `close_timeout` seconds is
		cancelled, in which case `on_close` is not fired.
		"""
		connection, self._connection = self._connection, None
		reader, self._reader = self._reader, None
		if connection is None:
			return
		LOGGER.info("Closing realtime session")
		try:
			await connection.close()
		finally:
			if reader is not None and reader is not asyncio.current_task():
				await self._stop_reader(reader)

	async def _stop_reader(self, reader: asyncio.Task) -> None:
		try:
			await asyncio.wait_for(reader, timeout=self.close_timeout)
		except asyncio.TimeoutError:
			LOGGER.warning("Realtime reader did not stop after %.0f seconds; cancelled", self.close_timeout)

	def is_connected(self) -> bool:
		return self._connection is not None


def openai_connection_factory(client: AsyncOpenAI, *, model: str, connect_timeout: float):
	"""Return a factory building `OpenAILiveConnection`s for the dispatcher."""

	def factory(callbacks: LiveCallbacks) -> OpenAILiveConnection:
		return OpenAILiveConnection(client, callbacks, model=model, connect_timeout=connect_timeout)

	return factory
