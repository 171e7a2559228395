"""Channel and video mirroring: data model, classification, reconciliation."""

from .frequency import classify, is_due
from .reconciler import (
    ChannelReconciliation,
    channel_from_metadata,
    merge_channel,
    merge_video,
    merge_videos,
    reconcile_channel,
    revoke_channel,
    with_access_token,
)
from .schemas import (
    Channel,
    ChannelMetadata,
    ChannelStatistics,
    CycleReport,
    FrequencyBucket,
    ParticipationStatus,
    PublishOutcome,
    PublishResult,
    User,
    Video,
    VideoMetadata,
    VideoState,
)
from .youtube_client import YouTubeClient

__all__ = [
    # Schemas
    "Channel",
    "ChannelMetadata",
    "ChannelStatistics",
    "CycleReport",
    "FrequencyBucket",
    "ParticipationStatus",
    "PublishOutcome",
    "PublishResult",
    "User",
    "Video",
    "VideoMetadata",
    "VideoState",
    # Frequency
    "classify",
    "is_due",
    # Reconciler
    "ChannelReconciliation",
    "reconcile_channel",
    "revoke_channel",
    "merge_channel",
    "merge_video",
    "merge_videos",
    "channel_from_metadata",
    "with_access_token",
    # Source
    "YouTubeClient",
]
