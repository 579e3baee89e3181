"""Remote Data Service implementations and the factory that picks one."""
from __future__ import annotations

from ..config import Settings, get_settings
from ..security.secrets import MissingSecretError, require_secret
from .base import (
    CallbackSubscription,
    Order,
    RemoteDataService,
    RemoteServiceError,
    RowChange,
    Subscription,
)
from .rest_backend import RestRemoteService
from .spaces_storage import SpacesStorage, StorageConfigurationError, StorageUploadError
from .sql_backend import LocalAuth, SqlRemoteService


def create_remote_service(settings: Settings | None = None) -> RemoteDataService:
    """Build the backend selected by ``Settings.backend``."""

    settings = settings or get_settings()
    if settings.backend == "rest":
        if not settings.backend_url:
            raise RemoteServiceError("BACKEND_URL must be set when BACKEND=rest", code="config")
        try:
            api_key = require_secret("BACKEND_API_KEY", settings.backend_api_key)
        except MissingSecretError as exc:
            raise RemoteServiceError(str(exc), code="config") from exc
        return RestRemoteService(
            settings.backend_url,
            api_key,
            timeout=settings.http_timeout,
            poll_interval=settings.realtime_poll_interval,
        )
    return SqlRemoteService(storage=SpacesStorage(settings=settings))


__all__ = [
    "CallbackSubscription",
    "LocalAuth",
    "Order",
    "RemoteDataService",
    "RemoteServiceError",
    "RestRemoteService",
    "RowChange",
    "SpacesStorage",
    "SqlRemoteService",
    "StorageConfigurationError",
    "StorageUploadError",
    "Subscription",
    "create_remote_service",
]
