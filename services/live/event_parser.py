"""Helpers to pull coach text out of realtime server events."""

from __future__ import annotations

from typing import Any, Optional

TEXT_DONE_EVENTS = {"response.output_text.done", "response.text.done"}
TRANSCRIPT_DONE_EVENTS = {"response.output_audio_transcript.done", "response.audio_transcript.done"}


def _field(event: Any, name: str) -> Any:
	if isinstance(event, dict):
		return event.get(name)
	return getattr(event, name, None)


def event_type(event: Any) -> Optional[str]:
	return _field(event, "type")


def extract_text_part(event: Any) -> Optional[str]:
	"""Return the completed text carried by a server event, if any."""
	kind = event_type(event)
	if kind in TEXT_DONE_EVENTS:
		text = _field(event, "text")
	elif kind in TRANSCRIPT_DONE_EVENTS:
		text = _field(event, "transcript")
	else:
		return None
	return text or None


def extract_error_message(event: Any) -> str:
	"""Return a readable message from a realtime `error` event."""
	error = _field(event, "error")
	message = _field(error, "message") if error is not None else None
	return message or "Realtime session error"
