"""Interface the relay expects from a realtime AI connection."""

from __future__ import annotations

from typing import Any, Callable, Dict, Protocol

from models.live_models import LiveCallbacks, SpeechConfig


class LiveConnection(Protocol):
	"""Bidirectional realtime session with an AI model."""

	async def connect(self, speech_config: SpeechConfig) -> None: ...

	async def send_text(self, text: str) -> None: ...

	async def send_audio(self, audio: bytes) -> None: ...

	async def send_video(self, frame: Dict[str, Any]) -> None: ...

	async def close(self) -> None: ...

	def is_connected(self) -> bool: ...


ConnectionFactory = Callable[[LiveCallbacks], LiveConnection]
