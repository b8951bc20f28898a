"""Validation helpers for submitted media URLs."""

from typing import Any, Dict, List, Optional
from urllib.parse import SplitResult, urlsplit

from services.storage.upload_urls import StorageSettings
from utils.errors import ValidationError


def _split(url: str) -> Optional[SplitResult]:
    """Parse an http(s) URL, returning None for anything else."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    return parts


def is_allowed_media_url(url: str, storage: StorageSettings) -> bool:
    """Return True when `url` points at the configured public bucket.

    A configured public URL prefix wins, then the custom domain, then the
    account's default r2.dev / cloudflarestorage hosts. Hosts are compared
    on the parsed URL, never as substrings.
    """
    parts = _split(url) if url else None
    if parts is None:
        return False
    host = parts.hostname
    if storage.public_url:
        base = _split(storage.public_url)
        if base is None:
            return False
        prefix = base.path.rstrip("/") + "/"
        return (
            parts.scheme == base.scheme
            and parts.netloc.lower() == base.netloc.lower()
            and parts.path.startswith(prefix)
        )
    if storage.custom_domain:
        return host == storage.custom_domain.lower()
    if not storage.account_id:
        return False
    account = storage.account_id.lower()
    storage_host = f"{account}.r2.cloudflarestorage.com"
    return host in (f"pub-{account}.r2.dev", storage_host) or host.endswith(f".{storage_host}")


def validate_video_submission(payload: Dict[str, Any], storage: StorageSettings) -> None:
    """Validate a video job submission, raising ValidationError on bad input."""
    if not payload.get("videoUrl") or not payload.get("originalFilename") or not payload.get("contentType"):
        raise ValidationError("Missing videoUrl, originalFilename, or contentType.")
    if not is_allowed_media_url(payload["videoUrl"], storage):
        raise ValidationError("Invalid video URL format.")


def validate_image_submission(images: Any, storage: StorageSettings, max_images: int = 3) -> List[Dict[str, str]]:
    """Validate an image job submission and return the normalized image list.

    Each image needs `url`, `filename` and an `image/*` `contentType`, and
    its URL must point at the configured bucket.
    """
    if not images or not isinstance(images, list):
        raise ValidationError("Missing images array or empty images.")
    if len(images) > max_images:
        raise ValidationError(f"Maximum {max_images} images allowed.")

    normalized: List[Dict[str, str]] = []
    for image in images:
        if not isinstance(image, dict) or not image.get("url") or not image.get("filename") or not image.get("contentType"):
            raise ValidationError("Each image must have url, filename, and contentType.")
        if not str(image["contentType"]).startswith("image/"):
            raise ValidationError(f"Invalid content type: {image['contentType']}. Only images are allowed.")
        normalized.append({"url": image["url"], "filename": image["filename"], "contentType": image["contentType"]})

    for image in normalized:
        if not is_allowed_media_url(image["url"], storage):
            raise ValidationError(f"Invalid image URL format: {image['url']}")
    return normalized
