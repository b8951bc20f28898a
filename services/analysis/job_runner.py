"""Background processing for video and image analysis jobs."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from typing import Any, Dict, Optional, Sequence

import aiofiles
import httpx

from dal.analysis_event_dal import AnalysisEventDAL
from models.analysis_event import STATUS_FAILED, STATUS_PROCESSING
from models.live_models import utc_timestamp
from services.analysis.frame_sampler import FrameSampler
from services.analysis.posture_analyzer import PostureAnalyzer

LOGGER = logging.getLogger(__name__)


class VideoDownloadError(RuntimeError):
    """The uploaded video could not be fetched from object storage."""


class AnalysisJobRunner:
    """Drive one analysis job from pending to completed or failed.

    Every step updates the job record so the results endpoint can report
    progress. Errors never escape: they are logged and stored on the record.
    """

    def __init__(
        self,
        dal: AnalysisEventDAL,
        analyzer: PostureAnalyzer,
        http_client: httpx.AsyncClient,
        frame_sampler: Optional[FrameSampler] = None,
    ) -> None:
        self.dal = dal
        self.analyzer = analyzer
        self.http_client = http_client
        self.frame_sampler = frame_sampler or FrameSampler()

    async def run_video_job(self, event_id: str, video_url: str, original_filename: str) -> None:
        """Download, sample and analyze an uploaded video."""
        prefix = f"[Job {event_id}]"
        LOGGER.info("%s Starting video analysis. VideoURL: %s, Filename: %s", prefix, video_url, original_filename)
        tmp_file: Optional[str] = None
        try:
            await self.dal.update_status(event_id, STATUS_PROCESSING, status_text="Downloading video...")
            tmp_file = await self._download(video_url, original_filename)
            await self.dal.update_status(
                event_id, STATUS_PROCESSING, status_text="Video downloaded, analysis starting..."
            )

            frames = await asyncio.to_thread(self.frame_sampler.sample, tmp_file)
            LOGGER.info("%s Sampled %d frames", prefix, len(frames))
            result = await self.analyzer.analyze_frames(frames)
            await self.dal.complete_event(event_id, self._report(result, frame_count=len(frames)))
            LOGGER.info("%s Video analysis completed", prefix)
        except VideoDownloadError as exc:
            await self._fail(
                event_id,
                f"Failed to download video from storage. Please check the video URL or bucket accessibility. "
                f"Original Error: {exc}",
                "Analysis failed during video download.",
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            await self._fail(event_id, str(exc) or exc.__class__.__name__, "Analysis failed.")
        finally:
            if tmp_file and os.path.exists(tmp_file):
                try:
                    os.remove(tmp_file)
                except OSError as exc:
                    LOGGER.warning("%s Failed to clean up temporary file %s: %s", prefix, tmp_file, exc)

    async def run_image_job(self, event_id: str, image_urls: Sequence[str]) -> None:
        """Analyze the submitted images directly from their public URLs."""
        prefix = f"[Job {event_id}]"
        LOGGER.info("%s Starting image analysis for %d images", prefix, len(image_urls))
        try:
            await self.dal.update_status(event_id, STATUS_PROCESSING, status_text="Analyzing images...")
            result = await self.analyzer.analyze_images(image_urls)
            await self.dal.complete_event(event_id, self._report(result, image_count=len(image_urls)))
            LOGGER.info("%s Image analysis completed", prefix)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            await self._fail(event_id, str(exc) or exc.__class__.__name__, "Image analysis failed.")

    async def _download(self, video_url: str, original_filename: str) -> str:
        """Stream the video into a temporary file and return its path."""
        suffix = os.path.splitext(original_filename or "")[1] or ".mp4"
        fd, path = tempfile.mkstemp(prefix="analysis_", suffix=suffix)
        os.close(fd)
        try:
            async with self.http_client.stream("GET", video_url) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")[:500]
                    raise VideoDownloadError(f"{response.status_code} {response.reason_phrase}. Details: {body}")
                async with aiofiles.open(path, "wb") as fh:
                    async for chunk in response.aiter_bytes():
                        await fh.write(chunk)
        except httpx.HTTPError as exc:
            os.remove(path)
            raise VideoDownloadError(str(exc)) from exc
        except Exception:
            os.remove(path)
            raise
        return path

    async def _fail(self, event_id: str, error_message: str, status_text: str) -> None:
        LOGGER.error("[Job %s] %s", event_id, error_message)
        try:
            await self.dal.update_status(
                event_id, STATUS_FAILED, error_message=error_message, status_text=status_text
            )
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("[Job %s] Failed to record job failure", event_id)

    @staticmethod
    def _report(result: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
        report = {
            "text": result["text"],
            "timestamp": utc_timestamp(),
            "model_used": result.get("model_used"),
            "input_tokens": result.get("input_tokens"),
            "output_tokens": result.get("output_tokens"),
        }
        report.update(extra)
        return report
