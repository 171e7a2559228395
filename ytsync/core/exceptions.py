"""Custom exceptions for the sync engine."""


class SyncError(Exception):
    """Base exception for sync engine errors."""

    pass


class ExternalServiceError(SyncError):
    """An external system (source, publishing backend) failed."""

    pass


class TransientExternalError(ExternalServiceError):
    """Network failure, timeout or 5xx from an external system."""

    pass


class AuthRevokedError(ExternalServiceError):
    """Channel owner revoked the app's access to the content source."""

    pass


class PublishError(ExternalServiceError):
    """Publishing backend rejected record creation."""

    pass


class UploadError(ExternalServiceError):
    """Publishing backend rejected media upload."""

    pass


class ValidationError(SyncError):
    """Command rejected: bad signature, stale timestamp or invalid transition."""

    pass


class NotFoundError(SyncError):
    """Referenced channel, video or user does not exist."""

    pass


class DatabaseError(SyncError):
    """Database operation failed."""

    pass
