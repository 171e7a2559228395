"""Pydantic schemas for channels, videos and users mirrored from YouTube."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so ordering comparisons never mix kinds."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ParticipationStatus(str, Enum):
    """Channel enrollment state in the sync program."""

    UNVERIFIED = "Unverified"
    VERIFIED = "Verified"
    SUSPENDED = "Suspended"
    OPTED_OUT = "OptedOut"


ACTIVE_STATUSES = (ParticipationStatus.VERIFIED, ParticipationStatus.UNVERIFIED)


class VideoState(str, Enum):
    """Per-video publishing lifecycle.

    Declaration order is the state ordering used by the publish guards.
    """

    NEW = "New"
    PUBLISHING = "Publishing"
    PUBLISH_FAILED = "PublishFailed"
    PUBLISH_SUCCEEDED = "PublishSucceeded"
    UPLOAD_STARTED = "UploadStarted"
    UPLOAD_FAILED = "UploadFailed"
    UPLOAD_SUCCEEDED = "UploadSucceeded"

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)


_STATE_ORDER = list(VideoState)

# States whose videos need a publish attempt
NEEDS_ATTENTION_STATES = (VideoState.NEW, VideoState.PUBLISH_FAILED)
FAILED_STATES = (VideoState.PUBLISH_FAILED, VideoState.UPLOAD_FAILED)


class FrequencyBucket(str, Enum):
    """Cadence tier controlling how often a channel is rescanned."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class Thumbnails(BaseModel):
    default: str | None = None
    medium: str | None = None
    high: str | None = None
    standard: str | None = None
    max_res: str | None = None


class ChannelStatistics(BaseModel):
    view_count: int | None = None
    comment_count: int | None = None
    subscriber_count: int | None = None
    video_count: int | None = None


class Credentials(BaseModel):
    """OAuth tokens used to call the source on the channel owner's behalf."""

    access_token: str | None = None
    refresh_token: str | None = None


class ChannelMetadata(BaseModel):
    """Channel metadata as returned by the content source."""

    channel_id: str
    title: str
    description: str | None = None
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    published_at: datetime | None = None
    statistics: ChannelStatistics = Field(default_factory=ChannelStatistics)
    uploads_playlist_id: str | None = None
    # Set only when the source refreshed the access token to serve the request
    access_token: str | None = None


class Channel(BaseModel):
    """Channel document for MongoDB storage.

    Externally-sourced fields are refreshed by the channel reconciler; the rest
    are owned locally and only change through administrative commands.
    """

    # Externally sourced
    id: str
    title: str
    description: str | None = None
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    published_at: datetime | None = None
    statistics: ChannelStatistics = Field(default_factory=ChannelStatistics)
    uploads_playlist_id: str | None = None

    # Locally owned
    user_id: str
    email: str | None = None
    publisher_channel_id: str | None = None
    status: ParticipationStatus = ParticipationStatus.UNVERIFIED
    should_sync: bool = False
    last_acted_at: datetime | None = None
    credentials: Credentials | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("last_acted_at")
    @classmethod
    def last_acted_at_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def redacted(self) -> "Channel":
        """Snapshot without credentials, for event payloads."""
        return self.model_copy(update={"credentials": None})

    def model_dump_for_mongo(self) -> dict[str, Any]:
        """Convert to dict suitable for MongoDB storage."""
        return self.model_dump(mode="json")


class VideoMetadata(BaseModel):
    """Video metadata from YouTube."""

    video_id: str
    title: str
    description: str | None = None
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    duration: str | None = None
    published_at: datetime | None = None
    upload_status: str | None = None
    privacy_status: str | None = None
    view_count: int | None = None


class Video(BaseModel):
    """Video document for MongoDB storage."""

    # Externally sourced
    id: str
    channel_id: str
    title: str
    description: str | None = None
    thumbnails: Thumbnails = Field(default_factory=Thumbnails)
    duration: str | None = None
    published_at: datetime | None = None
    upload_status: str | None = None
    privacy_status: str | None = None
    view_count: int | None = None

    # Locally owned
    state: VideoState = VideoState.NEW
    publish_handle: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def url(self) -> str:
        return f"https://youtube.com/watch?v={self.id}"

    def model_dump_for_mongo(self) -> dict[str, Any]:
        """Convert to dict suitable for MongoDB storage."""
        return self.model_dump(mode="json")


class User(BaseModel):
    """YouTube account that authorized the app."""

    id: str
    email: str | None = None
    credentials: Credentials = Field(default_factory=Credentials)
    created_at: datetime = Field(default_factory=utcnow)

    def redacted(self) -> "User":
        return self.model_copy(update={"credentials": Credentials()})

    def model_dump_for_mongo(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ChannelAction(str, Enum):
    """Administrative actions on a channel."""

    SET_SHOULD_SYNC = "set_should_sync"
    OPT_OUT = "opt_out"
    SUSPEND = "suspend"
    UNSUSPEND = "unsuspend"
    VERIFY = "verify"
    UNVERIFY = "unverify"

    @property
    def privileged(self) -> bool:
        return self not in (ChannelAction.SET_SHOULD_SYNC, ChannelAction.OPT_OUT)


class ChannelCommand(BaseModel):
    """Message body of a signed channel command."""

    action: ChannelAction
    timestamp: datetime
    should_sync: bool | None = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def canonical(self) -> bytes:
        """Stable byte representation that the signature covers."""
        return self.model_dump_json(exclude_none=True).encode()


class SignedCommand(BaseModel):
    message: ChannelCommand
    signature: str


class PublishOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class PublishResult(BaseModel):
    """Result of one publish or upload attempt.

    ``skipped`` means nothing was touched; ``failed`` means the failure state was
    persisted and an event emitted.
    """

    video_id: str
    channel_id: str
    outcome: PublishOutcome
    state: VideoState
    publish_handle: str | None = None
    reason: str | None = None


class CycleReport(BaseModel):
    """Summary of one ingestion cycle."""

    active_buckets: list[FrequencyBucket]
    channels_eligible: int = 0
    channels_processed: int = 0
    channels_revoked: int = 0
    videos_observed: int = 0
    videos_pending: int = 0
    errors: int = 0
    started_at: datetime
    completed_at: datetime | None = None
    status: Literal["completed", "partial"] = "completed"
