"""Image uploads for avatars, banners and post galleries."""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Iterable

from ..clients.base import RemoteDataService, RemoteServiceError
from ..constants import AVATARS_BUCKET, BANNERS_BUCKET, POSTS_BUCKET
from ..schemas import MutationResult, ServiceError

logger = logging.getLogger(__name__)

PROFILE_BUCKETS = frozenset({AVATARS_BUCKET, BANNERS_BUCKET})
DEFAULT_EXTENSION = "jpeg"
DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class ImageFile:
    data: bytes
    filename: str = ""
    content_type: str | None = None


def _extension(filename: str) -> str:
    if "." not in filename:
        return DEFAULT_EXTENSION
    ext = filename.rsplit(".", 1)[-1].strip().lower()
    return ext or DEFAULT_EXTENSION


def _millis() -> int:
    return int(time.time() * 1000)


class StorageService:
    def __init__(self, remote: RemoteDataService) -> None:
        self._remote = remote
        self.uploading = False

    async def upload_image(
        self,
        bucket: str,
        data: bytes,
        filename: str = "",
        content_type: str | None = None,
    ) -> MutationResult[str]:
        """Upload one avatar or banner image and return its public URL."""

        if bucket not in PROFILE_BUCKETS:
            return MutationResult.failure(ServiceError.validation(f"Unsupported bucket {bucket!r}"))
        if not data:
            return MutationResult.failure(ServiceError.validation("Could not read image data."))

        path = f"{_millis()}.{_extension(filename)}"
        logger.info("Uploading to bucket %s with path %s", bucket, path)
        self.uploading = True
        try:
            stored = await self._remote.upload(
                bucket, path, data, content_type=content_type or DEFAULT_CONTENT_TYPE, upsert=True
            )
        except RemoteServiceError as exc:
            logger.error("Upload to %s failed: %s", bucket, exc)
            return MutationResult.failure(ServiceError.from_exception(exc))
        finally:
            self.uploading = False
        return MutationResult.success(self._remote.public_url(bucket, stored))

    async def upload_multiple_images(self, files: Iterable[ImageFile]) -> list[str]:
        """Upload post images in order.

        Files without data are skipped. The first failing upload stops the
        batch; URLs of the files uploaded before it are still returned.
        """

        urls: list[str] = []
        self.uploading = True
        try:
            for image in files:
                if not image.data:
                    logger.warning("Skipping %s: no image data", image.filename or "<unnamed>")
                    continue
                path = f"{_millis()}_{secrets.token_hex(4)}.{_extension(image.filename)}"
                try:
                    stored = await self._remote.upload(
                        POSTS_BUCKET, path, image.data, content_type=image.content_type or DEFAULT_CONTENT_TYPE
                    )
                except RemoteServiceError as exc:
                    logger.error("Upload of %s failed: %s", image.filename or path, exc)
                    break
                urls.append(self._remote.public_url(POSTS_BUCKET, stored))
        finally:
            self.uploading = False
        logger.info("Uploaded %d post image(s)", len(urls))
        return urls


__all__ = ["ImageFile", "StorageService"]
