"""Presigned upload URLs for Cloudflare R2 (S3-compatible) object storage.

The browser PUTs media straight to the bucket using a short-lived presigned
URL, then submits the matching public URL as an analysis job.

Public class: `UploadUrlGenerator`

Example:
    generator = UploadUrlGenerator(StorageSettings.from_config())
    info = generator.generate("squat.mp4", "video/mp4")
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

import config


@dataclass(frozen=True)
class StorageSettings:
    """R2 bucket coordinates and credentials."""

    account_id: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = ""
    public_url: str = ""
    custom_domain: str = ""
    url_ttl: int = 300

    @classmethod
    def from_config(cls) -> "StorageSettings":
        return cls(
            account_id=config.R2_ACCOUNT_ID,
            access_key_id=config.R2_ACCESS_KEY_ID,
            secret_access_key=config.R2_SECRET_ACCESS_KEY,
            bucket_name=config.R2_BUCKET_NAME,
            public_url=config.R2_PUB_URL,
            custom_domain=config.R2_CUSTOM_DOMAIN,
            url_ttl=config.UPLOAD_URL_TTL,
        )

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account_id}.r2.cloudflarestorage.com"

    @property
    def upload_enabled(self) -> bool:
        return all((self.account_id, self.access_key_id, self.secret_access_key, self.bucket_name))

    def public_url_for(self, object_key: str) -> str:
        """Return the public URL clients and the analyzer use to read an object."""
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{object_key}"
        if self.custom_domain:
            return f"https://{self.custom_domain}/{object_key}"
        return f"https://pub-{self.account_id}.r2.dev/{object_key}"


class UploadUrlGenerator:
    """Create presigned PUT URLs for new media objects.

    Args:
        settings: Bucket coordinates and credentials.
        client: Optional preconfigured boto3 S3 client.
    """

    def __init__(self, settings: StorageSettings, client: Optional[Any] = None) -> None:
        if client is None and not settings.upload_enabled:
            raise ValueError("R2 storage is not configured.")
        self.settings = settings
        self.client = client or boto3.client(
            "s3",
            endpoint_url=settings.endpoint_url,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            region_name="auto",
            config=Config(signature_version="s3v4"),
        )

    def generate(self, filename: str, content_type: str) -> Dict[str, Any]:
        """Return `uploadUrl`, `objectKey`, `publicUrl` and `expiresIn` for a new upload.

        Raises:
            ValueError: If filename or content type is missing.
        """
        if not filename or not content_type:
            raise ValueError("Missing filename or contentType.")
        extension = filename.rsplit(".", 1)[-1] if "." in filename else "bin"
        object_key = f"videos/{uuid.uuid4()}.{extension}"

        upload_url = self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.settings.bucket_name, "Key": object_key, "ContentType": content_type},
            ExpiresIn=self.settings.url_ttl,
        )
        return {
            "uploadUrl": upload_url,
            "objectKey": object_key,
            "publicUrl": self.settings.public_url_for(object_key),
            "expiresIn": self.settings.url_ttl,
        }
