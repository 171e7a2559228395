"""Core package for the YouTube sync engine."""

from ytsync.core.clock import Clock, SystemClock
from ytsync.core.config import Settings, get_settings, get_settings_with_yaml
from ytsync.core.exceptions import (
    AuthRevokedError,
    DatabaseError,
    ExternalServiceError,
    NotFoundError,
    PublishError,
    SyncError,
    TransientExternalError,
    UploadError,
    ValidationError,
)
from ytsync.core.http_session import build_session
from ytsync.core.logging_config import (
    log_channel_sync_event,
    log_video_event,
    setup_logging,
)

__all__ = [
    "Settings",
    "get_settings",
    "get_settings_with_yaml",
    "Clock",
    "SystemClock",
    # Errors
    "SyncError",
    "ExternalServiceError",
    "TransientExternalError",
    "AuthRevokedError",
    "PublishError",
    "UploadError",
    "ValidationError",
    "NotFoundError",
    "DatabaseError",
    # Logging
    "setup_logging",
    "log_channel_sync_event",
    "log_video_event",
    # HTTP
    "build_session",
]
