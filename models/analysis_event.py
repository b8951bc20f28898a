from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

ANALYSIS_VIDEO = "video"
ANALYSIS_IMAGE = "image"


@dataclass
class AnalysisEvent:
    """In-memory representation of a row in the ANALYSIS_EVENT table.

    Attributes:
        id: Primary key (uuid hex string, None for new records).
        analysis_type: Either "video" or "image".
        status: One of pending, processing, completed, failed.
        status_text: Human-readable progress message for the current status.
        error_message: Failure reason when status is failed.
        video_url: Public URL of the uploaded video (video jobs only).
        image_urls: Public URLs of the uploaded images (image jobs only).
        original_filename: Uploaded filename(s), comma separated for images.
        content_type: Uploaded MIME type(s), comma separated for images.
        image_count: Number of images submitted.
        analysis_report: Report dict with `text`, `timestamp` and `model_used`.
        created_at: Unix timestamp (seconds) when the row was inserted.
        updated_at: Unix timestamp (seconds) of the last status change.
    """

    id: Optional[str]
    analysis_type: str
    status: str = STATUS_PENDING
    status_text: Optional[str] = None
    error_message: Optional[str] = None
    video_url: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    original_filename: Optional[str] = None
    content_type: Optional[str] = None
    image_count: int = 0
    analysis_report: Optional[Dict[str, Any]] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "analysis_type": self.analysis_type,
            "status": self.status,
            "status_text": self.status_text,
            "error_message": self.error_message,
            "r2_video_link": self.video_url,
            "image_urls": list(self.image_urls),
            "original_filename": self.original_filename,
            "content_type": self.content_type,
            "image_count": self.image_count,
            "analysis_report": self.analysis_report,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
