"""DigitalOcean Spaces object storage used by the in-process backend."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable, Protocol
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, get_settings
from ..security.secrets import MissingSecretError, require_secret
from .base import RemoteServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpacesConfig:
    """Runtime configuration extracted from settings."""

    key: str
    secret: str
    region: str
    bucket: str
    api_endpoint: str
    public_endpoint: str


class StorageConfigurationError(RemoteServiceError):
    """Raised when required DigitalOcean Spaces settings are missing or invalid."""


class StorageUploadError(RemoteServiceError):
    """Raised when an upload to object storage fails."""


class ObjectStorage(Protocol):
    async def upload(self, bucket: str, path: str, data: bytes, *, content_type: str, upsert: bool = False) -> str:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...


def _public_endpoint(raw: str) -> str:
    """Accept ``host``, ``//host`` or a full URL and return ``scheme://host[/path]``."""

    endpoint = raw.strip().rstrip("/")
    if "://" not in endpoint:
        endpoint = "https://" + endpoint.lstrip(":/")
    parts = urlparse(endpoint)
    if not parts.netloc:
        raise StorageConfigurationError("DO_SPACES_ENDPOINT must include a hostname.")
    return parts.geturl().rstrip("/")


def load_spaces_config(settings: Settings | None = None) -> SpacesConfig:
    """Read and validate DigitalOcean Spaces configuration."""

    settings = settings or get_settings()
    values = {
        "DO_SPACES_KEY": settings.spaces_key,
        "DO_SPACES_SECRET": settings.spaces_secret,
        "DO_SPACES_REGION": settings.spaces_region,
        "DO_SPACES_NAME": settings.spaces_name,
        "DO_SPACES_ENDPOINT": settings.spaces_endpoint,
    }
    unset = sorted(name for name, value in values.items() if not (value or "").strip())
    if unset:
        raise StorageConfigurationError("Missing required DigitalOcean Spaces configuration: " + ", ".join(unset))

    try:
        cleaned = {name: require_secret(name, value) for name, value in values.items()}
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    region = cleaned["DO_SPACES_REGION"]
    return SpacesConfig(
        key=cleaned["DO_SPACES_KEY"],
        secret=cleaned["DO_SPACES_SECRET"],
        region=region,
        bucket=cleaned["DO_SPACES_NAME"],
        api_endpoint=f"https://{region}.digitaloceanspaces.com",
        public_endpoint=_public_endpoint(cleaned["DO_SPACES_ENDPOINT"]),
    )


def create_spaces_client(config: SpacesConfig) -> BaseClient:
    return Session(
        aws_access_key_id=config.key,
        aws_secret_access_key=config.secret,
        region_name=config.region,
    ).client("s3", endpoint_url=config.api_endpoint)


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    """Sanitize path segments to be safe for object keys."""

    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def object_key(bucket: str, path: str) -> str:
    """Map a named bucket and object path onto a key inside the single Spaces bucket."""

    segments = _sanitize_segments(bucket.replace("\\", "/").split("/"))
    segments += _sanitize_segments(path.replace("\\", "/").split("/"))
    if len(segments) < 2:
        raise StorageUploadError(f"Invalid object path {path!r} for bucket {bucket!r}")
    return "/".join(segments)


class SpacesStorage:
    """Named buckets stored as key prefixes of one Spaces bucket."""

    def __init__(
        self,
        config: SpacesConfig | None = None,
        *,
        client: BaseClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._settings = settings

    @property
    def config(self) -> SpacesConfig:
        if self._config is None:
            self._config = load_spaces_config(self._settings)
        return self._config

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = create_spaces_client(self.config)
        return self._client

    def _exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.config.bucket, Key=key)
        except ClientError as exc:
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if status == 404 or exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise
        return True

    async def upload(self, bucket: str, path: str, data: bytes, *, content_type: str, upsert: bool = False) -> str:
        key = object_key(bucket, path)
        content_type = (content_type or "application/octet-stream").strip() or "application/octet-stream"
        config = self.config

        def _upload() -> None:
            try:
                if not upsert and self._exists(key):
                    raise StorageUploadError("The resource already exists", code="409", details=key)
                self.client.upload_fileobj(
                    BytesIO(data),
                    config.bucket,
                    key,
                    ExtraArgs={"ACL": "public-read", "ContentType": content_type},
                )
            except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network errors hard to reproduce
                logger.exception("Upload to DigitalOcean Spaces failed: %s", exc)
                raise StorageUploadError("Upload to DigitalOcean Spaces failed") from exc

        await asyncio.to_thread(_upload)
        return key.split("/", 1)[1]

    def public_url(self, bucket: str, path: str) -> str:
        key = object_key(bucket, path)
        return f"{self.config.public_endpoint.rstrip('/')}/{key}"


__all__ = [
    "ObjectStorage",
    "SpacesConfig",
    "SpacesStorage",
    "StorageConfigurationError",
    "StorageUploadError",
    "create_spaces_client",
    "load_spaces_config",
    "object_key",
]
