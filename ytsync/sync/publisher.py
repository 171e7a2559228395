"""Per-video publish state machine.

New ──> Publishing ──> PublishSucceeded ──> UploadStarted ──> UploadSucceeded
             │    ^                              │    ^
             v    │                              v    │
         PublishFailed                         UploadFailed

Every state change is persisted before the matching event is emitted.
"""

import logging

from ytsync.channel.schemas import (
    Channel,
    PublishOutcome,
    PublishResult,
    Video,
    VideoState,
)
from ytsync.core.clock import Clock
from ytsync.core.constants import (
    CREATE_VIDEO_EVENTS_TOPIC,
    UPLOAD_VIDEO_EVENTS_TOPIC,
    YOUTUBE_PRIVATE_STATUS,
    YOUTUBE_PROCESSED_STATUS,
)
from ytsync.core.exceptions import NotFoundError, PublishError
from ytsync.core.logging_config import log_video_event
from ytsync.core.timeouts import call_with_timeout

from .emitter import EventEmitter
from .events import VideoEvent
from .interfaces import PublisherClient, SyncStore

logger = logging.getLogger(__name__)

UPLOADABLE_STATES = (
    VideoState.PUBLISH_SUCCEEDED,
    VideoState.UPLOAD_STARTED,
    VideoState.UPLOAD_FAILED,
)


def publish_skip_reason(video: Video) -> str | None:
    """Why a video must not be published right now, or None if it may be."""
    if video.upload_status != YOUTUBE_PROCESSED_STATUS:
        return f"video not processed on YouTube (upload status: {video.upload_status})"
    if video.privacy_status == YOUTUBE_PRIVATE_STATUS:
        return "video is private"
    if video.state.rank >= VideoState.PUBLISH_SUCCEEDED.rank:
        return f"video already published (state: {video.state.value})"
    return None


def upload_skip_reason(video: Video) -> str | None:
    """Why a video's media must not be uploaded right now, or None if it may be."""
    if video.state not in UPLOADABLE_STATES:
        return f"video not ready for upload (state: {video.state.value})"
    return None


class PublishStateMachine:
    """Drives one video through record creation and media upload."""

    def __init__(
        self,
        store: SyncStore,
        publisher: PublisherClient,
        emitter: EventEmitter,
        clock: Clock,
        timeout: float = 120.0,
    ) -> None:
        self.store = store
        self.publisher = publisher
        self.emitter = emitter
        self.clock = clock
        self.timeout = timeout

    async def _load(self, channel_id: str, video_id: str) -> tuple[Channel, Video]:
        channel = await self.store.get_channel(channel_id)
        if channel is None:
            raise NotFoundError(f"Channel with id {channel_id} not found")

        video = await self.store.get_video(channel_id, video_id)
        if video is None:
            raise NotFoundError(f"Video with id {video_id} not found in channel {channel_id}")

        return channel, video

    async def _transition(self, video: Video, state: VideoState, **updates) -> Video:
        updated = video.model_copy(update={"state": state, **updates})
        await self.store.upsert_video(updated)
        return updated

    def _result(self, video: Video, outcome: PublishOutcome, reason: str | None = None) -> PublishResult:
        return PublishResult(
            video_id=video.id,
            channel_id=video.channel_id,
            outcome=outcome,
            state=video.state,
            publish_handle=video.publish_handle,
            reason=reason,
        )

    async def publish(self, channel_id: str, video_id: str) -> PublishResult:
        """
        Create the video's record in the publishing backend.

        Args:
            channel_id: Owning channel ID
            video_id: Video ID

        Returns:
            PublishResult: ``skipped`` if a guard refused the video, ``succeeded``
            with the record handle, or ``failed`` after persisting PublishFailed.

        Raises:
            NotFoundError: If the channel or video is not stored
        """
        channel, video = await self._load(channel_id, video_id)

        reason = publish_skip_reason(video)
        if reason:
            logger.debug("Skipping publish of %s: %s", video_id, reason)
            return self._result(video, PublishOutcome.SKIPPED, reason)

        publishing = await self._transition(video, VideoState.PUBLISHING)
        log_video_event(logger, channel_id, video_id, VideoState.PUBLISHING.value)

        try:
            handle = await call_with_timeout(
                self.publisher.create_record(channel, publishing),
                self.timeout,
                f"create record for video {video_id}",
            )
            if not handle:
                raise PublishError("publishing backend returned an empty record handle")
        except Exception as e:
            failed = await self._transition(publishing, VideoState.PUBLISH_FAILED)
            log_video_event(logger, channel_id, video_id, failed.state.value, error=str(e))
            await self.emitter.emit(VideoEvent.of(failed, self.clock.now()), CREATE_VIDEO_EVENTS_TOPIC)
            return self._result(failed, PublishOutcome.FAILED, str(e))

        succeeded = await self._transition(
            publishing, VideoState.PUBLISH_SUCCEEDED, publish_handle=str(handle)
        )
        log_video_event(logger, channel_id, video_id, succeeded.state.value)
        await self.emitter.emit(VideoEvent.of(succeeded, self.clock.now()), UPLOAD_VIDEO_EVENTS_TOPIC)
        return self._result(succeeded, PublishOutcome.SUCCEEDED)

    async def upload(self, channel_id: str, video_id: str) -> PublishResult:
        """
        Upload the video's media to its already created record.

        Upload failures are persisted and emitted but not raised, so a caller
        processing many videos moves on to the next one.

        Raises:
            NotFoundError: If the channel or video is not stored
        """
        channel, video = await self._load(channel_id, video_id)

        reason = upload_skip_reason(video)
        if reason:
            logger.debug("Skipping upload of %s: %s", video_id, reason)
            return self._result(video, PublishOutcome.SKIPPED, reason)

        started = await self._transition(video, VideoState.UPLOAD_STARTED)
        log_video_event(logger, channel_id, video_id, started.state.value)

        try:
            await call_with_timeout(
                self.publisher.upload_media(channel, started),
                self.timeout,
                f"upload media for video {video_id}",
            )
        except Exception as e:
            failed = await self._transition(started, VideoState.UPLOAD_FAILED)
            log_video_event(logger, channel_id, video_id, failed.state.value, error=str(e))
            await self.emitter.emit(VideoEvent.of(failed, self.clock.now()), UPLOAD_VIDEO_EVENTS_TOPIC)
            return self._result(failed, PublishOutcome.FAILED, str(e))

        succeeded = await self._transition(started, VideoState.UPLOAD_SUCCEEDED)
        log_video_event(logger, channel_id, video_id, succeeded.state.value)
        return self._result(succeeded, PublishOutcome.SUCCEEDED)
