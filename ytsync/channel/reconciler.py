"""Channel and video reconciliation.

Merges freshly fetched YouTube data over the locally stored mirror. Each merge
function spells out which fields come from YouTube and which are owned locally,
so that local lifecycle state is never clobbered by a refresh.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

from ytsync.core.exceptions import AuthRevokedError, ExternalServiceError
from ytsync.core.timeouts import call_with_timeout

from .schemas import (
    Channel,
    ChannelMetadata,
    Credentials,
    ParticipationStatus,
    User,
    Video,
    VideoMetadata,
    VideoState,
)

if TYPE_CHECKING:
    from ytsync.sync.interfaces import SourceClient

logger = logging.getLogger(__name__)


class ChannelReconciliation(BaseModel):
    """Outcome of reconciling one stored channel against YouTube."""

    channel: Channel
    revoked: bool = False
    error: str | None = None


def with_access_token(credentials: Credentials | None, metadata: ChannelMetadata) -> Credentials | None:
    """Credentials carrying the access token the source refreshed, if it did."""
    if credentials is None or not metadata.access_token:
        return credentials
    return credentials.model_copy(update={"access_token": metadata.access_token})


def merge_channel(stored: Channel, metadata: ChannelMetadata) -> Channel:
    """Overwrite the externally-sourced channel fields, keep the local ones.

    The only local field touched is the access token, and only when the source
    had to refresh it.
    """
    return stored.model_copy(
        update={
            "title": metadata.title,
            "description": metadata.description,
            "thumbnails": metadata.thumbnails,
            "published_at": metadata.published_at,
            "statistics": metadata.statistics,
            "uploads_playlist_id": metadata.uploads_playlist_id or stored.uploads_playlist_id,
            "credentials": with_access_token(stored.credentials, metadata),
        }
    )


def revoke_channel(stored: Channel, now: datetime) -> Channel:
    """Opt a channel out after its owner revoked access."""
    acted_at = now if stored.last_acted_at is None else max(now, stored.last_acted_at)
    return stored.model_copy(
        update={
            "status": ParticipationStatus.OPTED_OUT,
            "should_sync": False,
            "last_acted_at": acted_at,
        }
    )


def channel_from_metadata(user: User, metadata: ChannelMetadata, now: datetime) -> Channel:
    """Build the first stored record for a newly spotted channel."""
    return Channel(
        id=metadata.channel_id,
        title=metadata.title,
        description=metadata.description,
        thumbnails=metadata.thumbnails,
        published_at=metadata.published_at,
        statistics=metadata.statistics,
        uploads_playlist_id=metadata.uploads_playlist_id,
        user_id=user.id,
        email=user.email,
        credentials=with_access_token(user.credentials, metadata),
        status=ParticipationStatus.UNVERIFIED,
        should_sync=False,
        created_at=now,
    )


async def reconcile_channel(
    stored: Channel,
    source: "SourceClient",
    now: datetime,
    timeout: float,
) -> ChannelReconciliation:
    """
    Refresh a stored channel from YouTube.

    Args:
        stored: Channel as currently stored
        source: SourceClient used to fetch channel metadata
        now: Current time (used as last-acted-at on revocation)
        timeout: Seconds allowed for the external call

    Returns:
        ChannelReconciliation. On revoked access the channel is opted out; on any
        other external failure it is returned unchanged.
    """
    if stored.credentials is None:
        return ChannelReconciliation(channel=stored, error="channel has no stored credentials")

    try:
        metadata = await call_with_timeout(
            source.fetch_channel(stored.credentials),
            timeout,
            f"fetch channel {stored.id}",
        )
    except AuthRevokedError as e:
        logger.warning("Access revoked for channel %s: %s", stored.id, e)
        return ChannelReconciliation(channel=revoke_channel(stored, now), revoked=True)
    except ExternalServiceError as e:
        logger.warning("Failed to refresh channel %s, keeping stored record: %s", stored.id, e)
        return ChannelReconciliation(channel=stored, error=str(e))

    if metadata.channel_id != stored.id:
        logger.warning(
            "Source returned channel %s for stored channel %s, keeping stored record",
            metadata.channel_id,
            stored.id,
        )
        return ChannelReconciliation(channel=stored, error="source returned a different channel")

    return ChannelReconciliation(channel=merge_channel(stored, metadata))


def merge_video(
    stored: Video | None,
    fetched: VideoMetadata,
    channel_id: str,
    now: datetime,
) -> Video:
    """
    Merge fetched video metadata over a stored video.

    Descriptive fields always come from YouTube. State, publish handle and
    creation time are kept from the stored record; a first-seen video starts in
    ``New`` with ``created_at = now``.
    """
    external = {
        "id": fetched.video_id,
        "channel_id": channel_id,
        "title": fetched.title,
        "description": fetched.description,
        "thumbnails": fetched.thumbnails,
        "duration": fetched.duration,
        "published_at": fetched.published_at,
        "upload_status": fetched.upload_status,
        "privacy_status": fetched.privacy_status,
        "view_count": fetched.view_count,
    }

    if stored is None:
        return Video(**external, state=VideoState.NEW, publish_handle=None, created_at=now)

    return Video(
        **external,
        state=stored.state,
        publish_handle=stored.publish_handle,
        created_at=stored.created_at,
    )


def merge_videos(
    stored: Iterable[Video],
    fetched: Sequence[VideoMetadata],
    channel_id: str,
    now: datetime,
) -> list[Video]:
    """
    Merge a fetched video list over the stored videos of one channel.

    Duplicate ids in the fetched list are collapsed to their first occurrence.

    Returns:
        Merged videos in fetched order
    """
    existing = {video.id: video for video in stored}
    merged: list[Video] = []
    seen: set[str] = set()

    for item in fetched:
        if item.video_id in seen:
            continue
        seen.add(item.video_id)
        merged.append(merge_video(existing.get(item.video_id), item, channel_id, now))

    return merged
