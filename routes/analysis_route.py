"""FastAPI routes for video/image analysis jobs."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Query, Request
from pydantic import BaseModel

from controllers.analysis_controller import get_history, get_result, retry_job, submit_images, submit_video
from utils.errors import ApiError

router = APIRouter(prefix="/api", tags=["analysis"])

LOGGER = logging.getLogger(__name__)


class VideoSubmission(BaseModel):
    videoUrl: Optional[str] = None
    originalFilename: Optional[str] = None
    contentType: Optional[str] = None


class ImageSubmission(BaseModel):
    images: Optional[List[Dict[str, Any]]] = None


@router.post("/submit-video-url", status_code=202)
async def submit_video_route(request: Request, payload: VideoSubmission, background: BackgroundTasks):
    """Create a video analysis job for an uploaded video URL."""
    try:
        return await submit_video(request, payload.model_dump(), background)
    except ApiError:
        raise
    except Exception as exc:
        LOGGER.exception("Error in submit-video-url")
        raise ApiError("Internal server error.") from exc


@router.post("/submit-images", status_code=202)
async def submit_images_route(request: Request, payload: ImageSubmission, background: BackgroundTasks):
    """Create an image analysis job for one to three uploaded images."""
    try:
        return await submit_images(request, payload.model_dump(), background)
    except ApiError:
        raise
    except Exception as exc:
        LOGGER.exception("Error in submit-images")
        raise ApiError("Internal server error.") from exc


@router.get("/results/{job_id}")
async def results_route(request: Request, job_id: str):
    try:
        return await get_result(request, job_id)
    except ApiError:
        raise
    except Exception as exc:
        LOGGER.exception("Error getting analysis result for %s", job_id)
        raise ApiError(f"Internal server error: {exc}") from exc


@router.get("/analysis-history")
async def history_route(request: Request, limit: int = Query(10, ge=1, le=100)):
    """Return the most recent analysis jobs, newest first."""
    try:
        return await get_history(request, limit)
    except ApiError:
        raise
    except Exception as exc:
        LOGGER.exception("Error getting analysis history")
        raise ApiError("Internal server error.") from exc


@router.post("/jobs/{job_id}/retry", status_code=202)
async def retry_route(request: Request, job_id: str, background: BackgroundTasks):
    """Re-queue a failed analysis job."""
    try:
        return await retry_job(request, job_id, background)
    except ApiError:
        raise
    except Exception as exc:
        LOGGER.exception("Error retrying job %s", job_id)
        raise ApiError("Internal server error during retry.") from exc
