"""Contracts for the collaborators the sync engine drives.

The engine only depends on these protocols; MongoDB, Redis, the YouTube Data
API and the HTTP publisher are the production implementations.
"""

from collections.abc import Sequence
from typing import Protocol

from ytsync.channel.schemas import (
    Channel,
    ChannelMetadata,
    Credentials,
    ParticipationStatus,
    SignedCommand,
    User,
    Video,
    VideoMetadata,
    VideoState,
)


class SourceClient(Protocol):
    """Content source (YouTube).

    Raises AuthRevokedError when the owner revoked access and
    TransientExternalError for anything else.
    """

    async def fetch_channel(self, credentials: Credentials) -> ChannelMetadata: ...

    async def fetch_recent_videos(self, channel: Channel, limit: int) -> list[VideoMetadata]: ...


class SyncStore(Protocol):
    """Local key/attribute store. Upserts fully replace the stored record."""

    async def get_channel(self, channel_id: str) -> Channel | None: ...

    async def query_channels(
        self,
        statuses: Sequence[ParticipationStatus],
        should_sync: bool | None = None,
    ) -> list[Channel]: ...

    async def upsert_channel(self, channel: Channel) -> None: ...

    async def upsert_channels(self, channels: Sequence[Channel]) -> None: ...

    async def get_video(self, channel_id: str, video_id: str) -> Video | None: ...

    async def list_videos_by_channel(self, channel_id: str) -> list[Video]: ...

    async def list_videos_by_state(
        self,
        states: Sequence[VideoState],
        channel_id: str | None = None,
    ) -> list[Video]: ...

    async def upsert_video(self, video: Video) -> None: ...

    async def upsert_videos(self, videos: Sequence[Video]) -> None: ...

    async def get_user(self, user_id: str) -> User | None: ...

    async def upsert_user(self, user: User) -> None: ...


class PublisherClient(Protocol):
    """Publishing backend.

    Raises PublishError / UploadError on rejection; other exceptions are
    treated the same way by the state machine.
    """

    async def create_record(self, channel: Channel, video: Video) -> str: ...

    async def upload_media(self, channel: Channel, video: Video) -> None: ...


class EventTransport(Protocol):
    """Fire-and-forget topic publisher. Returns False when delivery failed."""

    async def publish(self, payload: str, topic: str) -> bool: ...

    async def publish_all(self, payloads: Sequence[str], topic: str) -> bool: ...


class CommandVerifier(Protocol):
    """Checks that a signed command was issued by someone allowed to issue it."""

    def verify(self, channel: Channel, command: SignedCommand) -> bool: ...
