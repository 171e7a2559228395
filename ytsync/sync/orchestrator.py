"""Sync orchestrator - composes classification, reconciliation, publishing and events.

One ``run_ingestion_cycle`` call processes the channels due for the given
frequency buckets and returns; all durable state lives in the store.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import NamedTuple

from ytsync.channel.frequency import classify, is_due
from ytsync.channel.reconciler import (
    channel_from_metadata,
    merge_channel,
    merge_videos,
    reconcile_channel,
    with_access_token,
)
from ytsync.channel.schemas import (
    ACTIVE_STATUSES,
    FAILED_STATES,
    NEEDS_ATTENTION_STATES,
    Channel,
    ChannelStatistics,
    CycleReport,
    FrequencyBucket,
    PublishOutcome,
    PublishResult,
    SignedCommand,
    User,
    Video,
)
from ytsync.core.clock import Clock, SystemClock
from ytsync.core.config import Settings
from ytsync.core.constants import (
    CHANNEL_EVENTS_TOPIC,
    CREATE_VIDEO_EVENTS_TOPIC,
    USER_EVENTS_TOPIC,
)
from ytsync.core.exceptions import NotFoundError
from ytsync.core.logging_config import log_channel_sync_event
from ytsync.core.timeouts import call_with_timeout

from .commands import HmacCommandVerifier, apply_command
from .emitter import EventEmitter
from .events import ChannelSpotted, IngestChannel, UserCreated, VideoEvent
from .interfaces import (
    CommandVerifier,
    EventTransport,
    PublisherClient,
    SourceClient,
    SyncStore,
)
from .publisher import PublishStateMachine

logger = logging.getLogger(__name__)


class _ChannelOutcome(NamedTuple):
    revoked: bool = False
    videos_observed: int = 0
    videos_pending: int = 0
    error: str | None = None


class SyncOrchestrator:
    """
    Entry point of the sync engine.

    All collaborators are injected; nothing here reads process-wide state.

    Usage:
        orchestrator = SyncOrchestrator(settings, store, source, publisher, transport)
        report = await orchestrator.run_ingestion_cycle([FrequencyBucket.DAILY])
    """

    def __init__(
        self,
        settings: Settings,
        store: SyncStore,
        source: SourceClient,
        publisher: PublisherClient,
        transport: EventTransport,
        clock: Clock | None = None,
        verifier: CommandVerifier | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.source = source
        self.clock = clock or SystemClock()
        self.emitter = EventEmitter(transport)
        self.verifier = verifier or HmacCommandVerifier(
            settings.command_owner_key, settings.command_operator_key
        )
        self.state_machine = PublishStateMachine(
            store,
            publisher,
            self.emitter,
            self.clock,
            timeout=float(settings.publisher_timeout),
        )

    def classify(self, statistics: ChannelStatistics | None) -> FrequencyBucket:
        """Frequency bucket of a channel under the configured tiers."""
        return classify(statistics, self.settings.frequency_tiers)

    # Ingestion

    async def run_ingestion_cycle(
        self, active_buckets: Iterable[FrequencyBucket | str]
    ) -> CycleReport:
        """
        Run one ingestion cycle over the channels due for ``active_buckets``.

        Eligible channels are Verified or Unverified, have should-sync set and
        classify into an active bucket. Each channel is handled by its own
        worker, at most ``sync_max_workers`` at a time; a failing channel is
        counted in the report and never stops the others.

        Returns:
            CycleReport with per-cycle counts
        """
        buckets = {FrequencyBucket(b) for b in active_buckets}
        report = CycleReport(
            active_buckets=[b for b in FrequencyBucket if b in buckets],
            started_at=self.clock.now(),
        )

        candidates = await self.store.query_channels(ACTIVE_STATUSES, should_sync=True)
        eligible = [
            channel
            for channel in candidates
            if channel.should_sync
            and channel.status in ACTIVE_STATUSES
            and is_due(channel.statistics, buckets, self.settings.frequency_tiers)
        ]
        report.channels_eligible = len(eligible)

        logger.info(
            "Starting ingestion cycle for %s: %d of %d active channels due",
            ", ".join(b.value for b in report.active_buckets) or "no buckets",
            len(eligible),
            len(candidates),
        )

        semaphore = asyncio.Semaphore(max(1, self.settings.sync_max_workers))

        async def worker(channel: Channel) -> _ChannelOutcome:
            async with semaphore:
                return await self._ingest_channel(channel)

        outcomes = await asyncio.gather(*(worker(channel) for channel in eligible))

        for outcome in outcomes:
            if outcome.error is not None:
                report.errors += 1
                continue
            report.channels_processed += 1
            if outcome.revoked:
                report.channels_revoked += 1
            report.videos_observed += outcome.videos_observed
            report.videos_pending += outcome.videos_pending

        report.completed_at = self.clock.now()
        if report.errors:
            report.status = "partial"

        logger.info(
            "Ingestion cycle %s: %d channels processed, %d revoked, %d errors, "
            "%d videos observed, %d pending",
            report.status,
            report.channels_processed,
            report.channels_revoked,
            report.errors,
            report.videos_observed,
            report.videos_pending,
        )
        return report

    async def _ingest_channel(self, channel: Channel) -> _ChannelOutcome:
        """Reconcile one channel and its videos. Never raises."""
        try:
            reconciliation = await reconcile_channel(
                channel,
                self.source,
                self.clock.now(),
                self.settings.sync_external_call_timeout,
            )
            if reconciliation.error is not None:
                log_channel_sync_event(logger, channel.id, "failed", error=reconciliation.error)
                return _ChannelOutcome(error=reconciliation.error)

            await self.store.upsert_channel(reconciliation.channel)

            if reconciliation.revoked:
                log_channel_sync_event(logger, channel.id, "revoked")
                return _ChannelOutcome(revoked=True)

            refreshed = reconciliation.channel
            await self.emitter.emit(
                IngestChannel.of(refreshed, self.clock.now()), CHANNEL_EVENTS_TOPIC
            )

            videos = await self.reconcile_videos(refreshed)
            pending = sum(1 for v in videos if v.state in NEEDS_ATTENTION_STATES)
            log_channel_sync_event(
                logger,
                channel.id,
                "completed",
                videos_observed=len(videos),
                videos_pending=pending,
            )
            return _ChannelOutcome(videos_observed=len(videos), videos_pending=pending)

        except Exception as e:
            log_channel_sync_event(logger, channel.id, "failed", error=str(e))
            return _ChannelOutcome(error=str(e))

    async def reconcile_videos(self, channel: Channel) -> list[Video]:
        """
        Fetch a channel's recent videos, merge them over the stored ones and
        persist the merged set.

        Videos that need attention (New or PublishFailed) are emitted as one
        batch to the create-video topic after the upsert completes.

        Raises:
            TransientExternalError: If the fetch failed or timed out
            DatabaseError: If the store failed
        """
        fetched = await call_with_timeout(
            self.source.fetch_recent_videos(channel, self.settings.sync_max_videos_per_channel),
            self.settings.sync_external_call_timeout,
            f"fetch videos of channel {channel.id}",
        )
        stored = await self.store.list_videos_by_channel(channel.id)

        now = self.clock.now()
        merged = merge_videos(stored, fetched, channel.id, now)
        await self.store.upsert_videos(merged)

        attention = [VideoEvent.of(v, now) for v in merged if v.state in NEEDS_ATTENTION_STATES]
        await self.emitter.emit_all(attention, CREATE_VIDEO_EVENTS_TOPIC)

        return merged

    # Publishing

    async def publish_video(self, channel_id: str, video_id: str) -> PublishResult:
        """Create the backend record for one video (no-op once published)."""
        return await self.state_machine.publish(channel_id, video_id)

    async def upload_video(self, channel_id: str, video_id: str) -> PublishResult:
        """Upload the media of one published video."""
        return await self.state_machine.upload(channel_id, video_id)

    async def publish_pending(self, channel_id: str | None = None) -> list[PublishResult]:
        """
        Publish every video waiting in New or PublishFailed.

        One worker per video, bounded by ``sync_max_workers``. A video that
        vanished between listing and publishing, or whose attempt raised, is
        logged and left out of the results; the other videos still run.
        """
        videos = await self.store.list_videos_by_state(NEEDS_ATTENTION_STATES, channel_id)
        semaphore = asyncio.Semaphore(max(1, self.settings.sync_max_workers))

        async def worker(video: Video) -> PublishResult | None:
            async with semaphore:
                try:
                    return await self.publish_video(video.channel_id, video.id)
                except NotFoundError as e:
                    logger.warning("Skipping video %s: %s", video.id, e)
                    return None
                except Exception as e:
                    logger.error("Publishing video %s of %s failed: %s", video.id, video.channel_id, e)
                    return None

        results = [r for r in await asyncio.gather(*(worker(v) for v in videos)) if r is not None]

        succeeded = sum(1 for r in results if r.outcome is PublishOutcome.SUCCEEDED)
        failed = sum(1 for r in results if r.outcome is PublishOutcome.FAILED)
        logger.info(
            "Published %d of %d pending videos (%d failed, %d skipped, %d dropped)",
            succeeded,
            len(videos),
            failed,
            len(results) - succeeded - failed,
            len(videos) - len(results),
        )
        return results

    async def list_failed_videos(self, channel_id: str | None = None) -> list[Video]:
        """Videos whose last publish or upload attempt failed."""
        return await self.store.list_videos_by_state(FAILED_STATES, channel_id)

    # Administration

    async def apply_channel_command(self, channel_id: str, command: SignedCommand) -> Channel:
        """
        Apply a signed administrative command to a stored channel.

        Raises:
            NotFoundError: If the channel is not stored
            ValidationError: If the command was rejected; the stored channel
                is left untouched
        """
        channel = await self.store.get_channel(channel_id)
        if channel is None:
            raise NotFoundError(f"Channel with id {channel_id} not found")

        updated = apply_command(channel, command, self.verifier)
        await self.store.upsert_channel(updated)

        logger.info(
            "Applied %s to channel %s (status=%s, should_sync=%s)",
            command.message.action.value,
            channel_id,
            updated.status.value,
            updated.should_sync,
        )
        return updated

    # Onboarding

    async def register_user(self, user: User) -> User:
        """Persist a user that authorized the app and announce it."""
        await self.store.upsert_user(user)
        await self.emitter.emit(UserCreated.of(user, self.clock.now()), USER_EVENTS_TOPIC)
        logger.info("Registered user %s", user.id)
        return user

    async def ingest_user_channels(self, user: User) -> list[Channel]:
        """
        Fetch the channel owned by ``user`` and store it.

        A channel seen for the first time starts Unverified with should-sync
        off. A known channel gets its external fields refreshed and the user's
        new credentials; its status and should-sync flag are kept.

        Raises:
            AuthRevokedError: If the user's grant is already revoked
            TransientExternalError: If the source call failed
        """
        metadata = await call_with_timeout(
            self.source.fetch_channel(user.credentials),
            self.settings.sync_external_call_timeout,
            f"fetch channel of user {user.id}",
        )

        now = self.clock.now()
        stored = await self.store.get_channel(metadata.channel_id)
        if stored is None:
            channel = channel_from_metadata(user, metadata, now)
        else:
            channel = merge_channel(stored, metadata).model_copy(
                update={"credentials": with_access_token(user.credentials, metadata)}
            )

        await self.store.upsert_channel(channel)
        await self.emitter.emit(ChannelSpotted.of(channel, now), CHANNEL_EVENTS_TOPIC)

        logger.info("Spotted channel %s for user %s", channel.id, user.id)
        return [channel]
