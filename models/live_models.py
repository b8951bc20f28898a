"""Domain models for the live coach relay."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

EVENT_CONNECTED = "connected"
EVENT_SESSION_OPENED = "session_opened"
EVENT_COACH_MESSAGE = "coach_message"
EVENT_ERROR = "error"
EVENT_SESSION_CLOSED = "session_closed"


def utc_timestamp() -> str:
	"""Return the current time as an ISO-8601 UTC string."""
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ClientEvent:
	"""Server-to-browser event pushed over the SSE stream."""

	type: str
	text: Optional[str] = None
	message: Optional[str] = None
	reason: Optional[str] = None
	timestamp: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return {key: value for key, value in asdict(self).items() if value is not None}

	def to_sse(self) -> str:
		"""Format the event as a single SSE `data:` frame."""
		return f"data: {json.dumps(self.to_dict())}\n\n"


class DeliveryOutcome(str, Enum):
	"""Result of relaying one event to a browser."""

	DELIVERED = "delivered"
	QUEUED = "queued"


@dataclass(frozen=True)
class SpeechConfig:
	"""Fixed speech settings applied when a live connection is opened."""

	language_code: str
	voice_name: str


@dataclass
class LiveCallbacks:
	"""Event hooks a live connection fires as the AI side reports activity."""

	on_open: Callable[[], None]
	on_message: Callable[[Any], None]
	on_error: Callable[[Exception], None]
	on_close: Callable[[Optional[str]], None]
