"""Controller for presigned upload URL requests."""

from typing import Any, Dict, Optional

from fastapi import Request

from services.storage.upload_urls import UploadUrlGenerator
from utils.errors import StorageUnavailableError, ValidationError


def create_upload_url(request: Request, filename: Optional[str], content_type: Optional[str]) -> Dict[str, Any]:
    """Validate input and return a presigned PUT URL for a new media object.

    Raises:
        StorageUnavailableError: If object storage is not configured.
        ValidationError: If filename or content type is missing.
    """
    generator: Optional[UploadUrlGenerator] = getattr(request.app.state, "upload_url_generator", None)
    if generator is None:
        raise StorageUnavailableError("R2 storage not configured on server.")
    if not filename or not content_type:
        raise ValidationError("Missing filename or contentType.")
    return generator.generate(filename, content_type)
