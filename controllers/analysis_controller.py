from fastapi import BackgroundTasks, Request
from typing import Any, Dict

from dal.analysis_event_dal import AnalysisEventDAL
from models.analysis_event import (
    ANALYSIS_IMAGE,
    ANALYSIS_VIDEO,
    STATUS_FAILED,
    STATUS_PENDING,
    AnalysisEvent,
)
from services.analysis.job_runner import AnalysisJobRunner
from services.storage.upload_urls import StorageSettings
from utils.errors import ApiError, NotFoundError, ValidationError
from utils.media_validation import validate_image_submission, validate_video_submission


def _dal(request: Request) -> AnalysisEventDAL:
    dal = getattr(request.app.state, "analysis_dal", None)
    if dal is None:
        raise ApiError("Database not initialized.")
    return dal


def _runner(request: Request) -> AnalysisJobRunner:
    runner = getattr(request.app.state, "job_runner", None)
    if runner is None:
        raise ApiError("Analysis service not initialized.")
    return runner


def _storage(request: Request) -> StorageSettings:
    return getattr(request.app.state, "storage_settings", None) or StorageSettings.from_config()


async def submit_video(request: Request, payload: Dict[str, Any], background: BackgroundTasks) -> Dict[str, Any]:
    """Record a video analysis job and schedule its processing.

    Args:
        request: FastAPI Request (used to access app.state for shared services).
        payload: Body with `videoUrl`, `originalFilename` and `contentType`.
        background: Task list the job is scheduled on after the response is sent.

    Returns:
        A dict containing the new `job_id` (also echoed as `db_event_id`).
    """
    validate_video_submission(payload, _storage(request))
    runner = _runner(request)

    event = await _dal(request).create_event(
        AnalysisEvent(
            id=None,
            analysis_type=ANALYSIS_VIDEO,
            status=STATUS_PENDING,
            video_url=payload["videoUrl"],
            original_filename=payload["originalFilename"],
            content_type=payload["contentType"],
        )
    )
    background.add_task(runner.run_video_job, event.id, event.video_url, event.original_filename)

    return {
        "message": "Video URL received and analysis started.",
        "job_id": event.id,
        "db_event_id": event.id,
    }


async def submit_images(request: Request, payload: Dict[str, Any], background: BackgroundTasks) -> Dict[str, Any]:
    """Record an image analysis job (one to three images) and schedule it."""
    max_images = getattr(request.app.state, "max_analysis_images", 3)
    images = validate_image_submission(payload.get("images"), _storage(request), max_images=max_images)
    runner = _runner(request)

    event = await _dal(request).create_event(
        AnalysisEvent(
            id=None,
            analysis_type=ANALYSIS_IMAGE,
            status=STATUS_PENDING,
            image_urls=[img["url"] for img in images],
            original_filename=", ".join(img["filename"] for img in images),
            content_type=", ".join(img["contentType"] for img in images),
            image_count=len(images),
        )
    )
    background.add_task(runner.run_image_job, event.id, event.image_urls)

    return {
        "message": "Images received and analysis started.",
        "job_id": event.id,
        "db_event_id": event.id,
        "image_count": len(images),
    }


async def get_result(request: Request, job_id: str) -> Dict[str, Any]:
    """Return the pollable status and report of a job.

    Raises:
        NotFoundError if the job does not exist.
    """
    event = await _dal(request).get_event_by_id(job_id)
    if event is None:
        raise NotFoundError("Job not found in database.")

    report = event.analysis_report or {}
    result = {
        "status": event.status,
        "report": report.get("text") or report.get("analysis_text"),
        "error": event.error_message,
        "message": event.status_text,
        "videoUrl": event.video_url,
        "originalFilename": event.original_filename,
        "contentType": event.content_type,
    }
    return {key: value for key, value in result.items() if value}


async def get_history(request: Request, limit: int) -> Dict[str, Any]:
    events = await _dal(request).list_events(limit=limit)
    return {
        "message": "Analysis history retrieved successfully.",
        "data": [event.to_dict() for event in events],
        "count": len(events),
    }


async def retry_job(request: Request, job_id: str, background: BackgroundTasks) -> Dict[str, Any]:
    """Re-queue a failed job from its stored media."""
    dal = _dal(request)
    runner = _runner(request)
    event = await dal.get_event_by_id(job_id)
    if event is None:
        raise NotFoundError("Job not found in database.")
    if event.status != STATUS_FAILED:
        raise ValidationError(f"Job is not in failed state. Current status: {event.status}")

    if event.analysis_type == ANALYSIS_IMAGE:
        if not event.image_urls:
            raise ValidationError("Image URLs not found in job data.")
    elif not event.video_url:
        raise ValidationError("Video URL not found in job data.")

    await dal.update_status(
        job_id, STATUS_PENDING, status_text="Job retry requested, re-queued for processing."
    )
    if event.analysis_type == ANALYSIS_IMAGE:
        background.add_task(runner.run_image_job, job_id, event.image_urls)
    else:
        background.add_task(
            runner.run_video_job, job_id, event.video_url, event.original_filename or "unknown_file.mp4"
        )

    return {"message": "Job retry started successfully.", "job_id": job_id, "status": STATUS_PENDING}
