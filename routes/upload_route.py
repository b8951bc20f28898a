import logging
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from controllers.upload_controller import create_upload_url
from utils.errors import ApiError

router = APIRouter(prefix="/api", tags=["upload"])

LOGGER = logging.getLogger(__name__)


class UploadUrlRequest(BaseModel):
    filename: Optional[str] = None
    contentType: Optional[str] = None


@router.post("/generate-upload-url")
async def generate_upload_url_route(request: Request, payload: UploadUrlRequest):
    """Return a presigned PUT URL plus the public URL of the future object."""
    try:
        return create_upload_url(request, payload.filename, payload.contentType)
    except ApiError:
        raise
    except Exception as exc:
        LOGGER.exception("Error generating presigned URL")
        raise ApiError("Failed to generate upload URL.") from exc
