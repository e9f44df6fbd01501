import asyncio
import io
import os
import uuid
from typing import Any, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .core.config import settings
from .core.errors import DependencyError
from .core.logging import get_logger
from .validation import validate_logo

logger = get_logger("storage")


class LogoStorage:
    """Blob store for business logos on S3 (LocalStack in development)"""

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client: Any = None,
    ):
        self.bucket = bucket or settings.S3_BUCKET_NAME
        self.endpoint_url = endpoint_url or settings.S3_ENDPOINT_URL
        self.public_base_url = public_base_url or settings.S3_PUBLIC_BASE_URL
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def upload(
        self,
        owner_id: str,
        content: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        max_bytes: int,
    ) -> str:
        """Validate and store a logo, returning its public URL"""
        validate_logo(content_type, len(content), max_bytes)

        extension = os.path.splitext(filename or "")[1].lower() or ".png"
        key = f"{owner_id}/logos/{uuid.uuid4()}{extension}"
        try:
            await asyncio.to_thread(
                self.client.upload_fileobj,
                io.BytesIO(content),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Failed to upload logo for {owner_id}: {exc}", exc_info=True)
            raise DependencyError(context="upload_logo") from exc

        logger.info(f"Stored logo {key} ({len(content)} bytes)")
        return self.public_url(key)
