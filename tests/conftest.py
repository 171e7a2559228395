"""Pytest fixtures and configuration.

This module provides:
- In-memory implementations of the store, source, publisher and transport
- A fixed clock
- Settings for tests
- Sample data factories
"""

import asyncio
import os
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from ytsync.channel.schemas import (
    Channel,
    ChannelMetadata,
    ChannelStatistics,
    Credentials,
    ParticipationStatus,
    User,
    Video,
    VideoMetadata,
    VideoState,
)
from ytsync.core.config import Settings
from ytsync.core.exceptions import DatabaseError
from ytsync.sync.commands import HmacCommandVerifier
from ytsync.sync.orchestrator import SyncOrchestrator

# =============================================================================
# Test Configuration
# =============================================================================

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
OWNER_KEY = "owner-secret"
OPERATOR_KEY = "operator-secret"
TEST_REDIS_URL = os.getenv("TEST_REDIS_URL", "redis://localhost:6379")
TEST_REDIS_DB = 15


# =============================================================================
# Fakes
# =============================================================================


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


class InMemoryStore:
    """Store contract backed by dicts. Every write is recorded in ``writes``."""

    def __init__(self) -> None:
        self.channels: dict[str, Channel] = {}
        self.videos: dict[tuple[str, str], Video] = {}
        self.users: dict[str, User] = {}
        self.writes: list[tuple[str, Any]] = []
        self.fail_channel_writes: set[str] = set()
        self.fail_video_writes: set[str] = set()

    async def get_channel(self, channel_id: str) -> Channel | None:
        channel = self.channels.get(channel_id)
        return channel.model_copy(deep=True) if channel else None

    async def query_channels(
        self,
        statuses: Sequence[ParticipationStatus],
        should_sync: bool | None = None,
    ) -> list[Channel]:
        return [
            c.model_copy(deep=True)
            for c in self.channels.values()
            if c.status in statuses and (should_sync is None or c.should_sync == should_sync)
        ]

    async def upsert_channel(self, channel: Channel) -> None:
        await self.upsert_channels([channel])

    async def upsert_channels(self, channels: Sequence[Channel]) -> None:
        for channel in channels:
            if channel.id in self.fail_channel_writes:
                raise RuntimeError(f"write failed for {channel.id}")
            self.channels[channel.id] = channel.model_copy(deep=True)
            self.writes.append(("channel", channel.id))

    async def get_video(self, channel_id: str, video_id: str) -> Video | None:
        video = self.videos.get((channel_id, video_id))
        return video.model_copy(deep=True) if video else None

    async def list_videos_by_channel(self, channel_id: str) -> list[Video]:
        return [v.model_copy(deep=True) for (c, _), v in self.videos.items() if c == channel_id]

    async def list_videos_by_state(
        self,
        states: Sequence[VideoState],
        channel_id: str | None = None,
    ) -> list[Video]:
        return [
            v.model_copy(deep=True)
            for v in self.videos.values()
            if v.state in states and (channel_id is None or v.channel_id == channel_id)
        ]

    async def upsert_video(self, video: Video) -> None:
        if video.id in self.fail_video_writes:
            raise DatabaseError(f"write failed for {video.id}")
        self.videos[(video.channel_id, video.id)] = video.model_copy(deep=True)
        self.writes.append(("video", (video.id, video.state)))

    async def upsert_videos(self, videos: Sequence[Video]) -> None:
        for video in videos:
            self.videos[(video.channel_id, video.id)] = video.model_copy(deep=True)
        self.writes.append(("videos", [v.id for v in videos]))

    async def get_user(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    async def upsert_user(self, user: User) -> None:
        self.users[user.id] = user.model_copy(deep=True)
        self.writes.append(("user", user.id))

    def video_state(self, channel_id: str, video_id: str) -> VideoState:
        return self.videos[(channel_id, video_id)].state


class ScriptedSource:
    """Source client returning canned results.

    ``channels`` maps refresh token -> ChannelMetadata or exception;
    ``videos`` maps channel ID -> list of VideoMetadata or exception.
    """

    def __init__(self) -> None:
        self.channels: dict[str, ChannelMetadata | Exception] = {}
        self.videos: dict[str, list[VideoMetadata] | Exception] = {}
        self.channel_calls: list[str | None] = []
        self.video_calls: list[tuple[str, int]] = []
        self.delay = 0.0

    async def fetch_channel(self, credentials: Credentials) -> ChannelMetadata:
        self.channel_calls.append(credentials.refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.channels[credentials.refresh_token]
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_recent_videos(self, channel: Channel, limit: int) -> list[VideoMetadata]:
        self.video_calls.append((channel.id, limit))
        result = self.videos.get(channel.id, [])
        if isinstance(result, Exception):
            raise result
        return list(result)[:limit]


class StubPublisher:
    """Publishing backend stub. Set ``create_error`` / ``upload_error`` to fail."""

    def __init__(self) -> None:
        self.created: list[str] = []
        self.uploaded: list[str] = []
        self.create_error: Exception | None = None
        self.upload_error: Exception | None = None
        self.handle: str | None = None
        self.delay = 0.0
        self.on_create: Callable[[Video], None] | None = None

    async def create_record(self, channel: Channel, video: Video) -> str:
        if self.on_create:
            self.on_create(video)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.created.append(video.id)
        if self.create_error:
            raise self.create_error
        return self.handle if self.handle is not None else f"record-{video.id}"

    async def upload_media(self, channel: Channel, video: Video) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.uploaded.append(video.id)
        if self.upload_error:
            raise self.upload_error


class RecordingTransport:
    """Event transport that keeps every payload per topic.

    ``on_publish`` is called with (topic, payloads) before the payloads are
    recorded, letting tests inspect store state at emission time.
    """

    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []
        self.calls: list[tuple[str, int]] = []
        self.accept = True
        self.error: Exception | None = None
        self.on_publish: Callable[[str, Sequence[str]], None] | None = None

    async def publish(self, payload: str, topic: str) -> bool:
        return await self.publish_all([payload], topic)

    async def publish_all(self, payloads: Sequence[str], topic: str) -> bool:
        if self.error:
            raise self.error
        if self.on_publish:
            self.on_publish(topic, payloads)
        self.calls.append((topic, len(payloads)))
        if self.accept:
            self.published.extend((topic, p) for p in payloads)
        return self.accept

    def payloads(self, topic: str) -> list[str]:
        return [p for t, p in self.published if t == topic]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        sync_max_workers=4,
        sync_max_videos_per_channel=25,
        sync_external_call_timeout=1.0,
        publisher_timeout=1,
        command_owner_key=OWNER_KEY,
        command_operator_key=OPERATOR_KEY,
        redis_url=TEST_REDIS_URL,
        redis_db=TEST_REDIS_DB,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource()


@pytest.fixture
def publisher() -> StubPublisher:
    return StubPublisher()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def verifier() -> HmacCommandVerifier:
    return HmacCommandVerifier(OWNER_KEY, OPERATOR_KEY)


@pytest.fixture
def orchestrator(
    settings: Settings,
    store: InMemoryStore,
    source: ScriptedSource,
    publisher: StubPublisher,
    transport: RecordingTransport,
    clock: FixedClock,
) -> SyncOrchestrator:
    return SyncOrchestrator(settings, store, source, publisher, transport, clock=clock)


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def make_channel() -> Callable[..., Channel]:
    """Factory for stored channels."""

    def _make(
        channel_id: str = "UC_channel_1",
        status: ParticipationStatus = ParticipationStatus.UNVERIFIED,
        should_sync: bool = True,
        subscribers: int | None = 10,
        last_acted_at: datetime | None = None,
        **overrides: Any,
    ) -> Channel:
        fields: dict[str, Any] = {
            "id": channel_id,
            "title": f"Channel {channel_id}",
            "user_id": f"user-{channel_id}",
            "status": status,
            "should_sync": should_sync,
            "statistics": ChannelStatistics(subscriber_count=subscribers),
            "last_acted_at": last_acted_at,
            "credentials": Credentials(
                access_token=f"access-{channel_id}", refresh_token=f"refresh-{channel_id}"
            ),
            "publisher_channel_id": f"pub-{channel_id}",
            "created_at": NOW - timedelta(days=30),
        }
        fields.update(overrides)
        return Channel(**fields)

    return _make


@pytest.fixture
def make_channel_metadata() -> Callable[..., ChannelMetadata]:
    def _make(channel_id: str = "UC_channel_1", **overrides: Any) -> ChannelMetadata:
        fields: dict[str, Any] = {
            "channel_id": channel_id,
            "title": f"Channel {channel_id} (fresh)",
            "description": "Fresh description",
            "statistics": ChannelStatistics(
                view_count=1000, comment_count=5, subscriber_count=10, video_count=3
            ),
            "uploads_playlist_id": "UU" + channel_id[2:],
        }
        fields.update(overrides)
        return ChannelMetadata(**fields)

    return _make


@pytest.fixture
def make_video_metadata() -> Callable[..., VideoMetadata]:
    """Factory for fetched video metadata (processed and public by default)."""

    def _make(video_id: str = "vid_1", **overrides: Any) -> VideoMetadata:
        fields: dict[str, Any] = {
            "video_id": video_id,
            "title": f"Video {video_id}",
            "description": "A video",
            "duration": "PT4M13S",
            "published_at": NOW - timedelta(days=1),
            "upload_status": "processed",
            "privacy_status": "public",
            "view_count": 42,
        }
        fields.update(overrides)
        return VideoMetadata(**fields)

    return _make


@pytest.fixture
def make_video() -> Callable[..., Video]:
    """Factory for stored videos."""

    def _make(
        video_id: str = "vid_1",
        channel_id: str = "UC_channel_1",
        state: VideoState = VideoState.NEW,
        **overrides: Any,
    ) -> Video:
        fields: dict[str, Any] = {
            "id": video_id,
            "channel_id": channel_id,
            "title": f"Video {video_id}",
            "upload_status": "processed",
            "privacy_status": "public",
            "state": state,
            "created_at": NOW - timedelta(days=2),
        }
        fields.update(overrides)
        return Video(**fields)

    return _make


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers.

    Args:
        config: Pytest configuration
    """
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "requires_redis: requires Redis to be running")
    config.addinivalue_line("markers", "requires_mongodb: requires MongoDB to be running")
