"""Live coach session helpers backing the live-session routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import StreamingResponse

from services.live.dispatcher import LiveSessionDispatcher
from services.live.relay import LiveRelay
from services.live.sse import SSE_HEADERS, event_stream
from utils.errors import ApiError, ValidationError


def _dispatcher(request: Request) -> LiveSessionDispatcher:
	dispatcher = getattr(request.app.state, "live_dispatcher", None)
	if dispatcher is None:
		raise ApiError("Live coach is not available")
	return dispatcher


def _relay(request: Request) -> LiveRelay:
	relay = getattr(request.app.state, "live_relay", None)
	if relay is None:
		raise ApiError("Live coach is not available")
	return relay


async def run_action(
	request: Request,
	action: Optional[str],
	session_id: Optional[str],
	data: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
	"""Execute a single connect/disconnect/send action."""
	return await _dispatcher(request).dispatch(action, session_id, data)


def session_status(request: Request, session_id: Optional[str]) -> Dict[str, Any]:
	"""Report whether the session has a live AI connection."""
	if not session_id:
		raise ValidationError("Session ID required")
	return {"connected": _dispatcher(request).is_connected(session_id), "sessionId": session_id}


async def clear_sessions(request: Request) -> Dict[str, Any]:
	"""Close every live session and drop all channels and queued events."""
	await _relay(request).clear()
	return {"success": True, "message": "All sessions cleared"}


def open_event_stream(request: Request, session_id: Optional[str]) -> StreamingResponse:
	"""Return the long-lived SSE response for a session."""
	if not session_id:
		raise ValidationError("Session ID required")
	relay = _relay(request)
	relay.ensure_queue(session_id)
	keepalive = getattr(request.app.state, "sse_keepalive_seconds", None)
	return StreamingResponse(
		event_stream(relay, session_id, keepalive),
		media_type="text/event-stream",
		headers=SSE_HEADERS,
	)
