"""FastAPI routes for the live coach session relay."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from controllers.live_session_controller import clear_sessions, open_event_stream, run_action, session_status
from utils.errors import ApiError

router = APIRouter(prefix="/api/live-session", tags=["live-session"])

LOGGER = logging.getLogger(__name__)


class LiveActionPayload(BaseModel):
	action: Optional[str] = None
	sessionId: Optional[str] = None
	data: Optional[Dict[str, Any]] = None


@router.post("")
async def live_action_route(request: Request, payload: LiveActionPayload):
	try:
		return await run_action(request, payload.action, payload.sessionId, payload.data)
	except ApiError:
		raise
	except Exception as exc:
		LOGGER.exception("Live session API error")
		raise ApiError("Internal server error") from exc


@router.get("")
async def live_status_route(request: Request, sessionId: Optional[str] = None):
	return session_status(request, sessionId)


@router.delete("")
async def live_clear_route(request: Request):
	"""Close and forget every live session."""
	try:
		return await clear_sessions(request)
	except ApiError:
		raise
	except Exception as exc:
		LOGGER.exception("Failed to clear sessions")
		raise ApiError("Failed to clear sessions") from exc


@router.get("/sse")
async def live_events_route(request: Request, sessionId: Optional[str] = None):
	"""Stream coach events for a session as Server-Sent-Events."""
	return open_event_stream(request, sessionId)
