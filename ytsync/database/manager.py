"""MongoDB database manager.

This module handles MongoDB connection management and implements the store
contract the sync engine relies on: get by key, query by secondary attribute,
and full-record upserts.
"""

from collections.abc import Sequence
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReplaceOne
from pymongo.errors import PyMongoError

from ytsync.channel.schemas import Channel, ParticipationStatus, User, Video, VideoState
from ytsync.core.config import Settings
from ytsync.core.exceptions import DatabaseError


class MongoDBManager:
    """Manage MongoDB operations for the sync engine.

    This class provides:
    - Connection lifecycle management
    - Collection access
    - Get / query / upsert operations for channels, videos and users
    - Index management

    Usage:
        async with MongoDBManager(settings) as db:
            channel = await db.get_channel("UC...")
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize MongoDB manager.

        Args:
            settings: Application settings (connection URL and database name)
        """
        self.settings = settings
        self.client: AsyncIOMotorClient | None = None
        self.db: AsyncIOMotorDatabase | None = None
        self.channels: Any | None = None
        self.videos: Any | None = None
        self.users: Any | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize MongoDB connection."""
        if self._initialized:
            return

        self.client = AsyncIOMotorClient(
            self.settings.mongodb_url,
            serverSelectionTimeoutMS=self.settings.mongodb_timeout_ms,
        )
        self.db = self.client[self.settings.mongodb_database]
        self.channels = self.db.channels
        self.videos = self.db.videos
        self.users = self.db.users
        self._initialized = True

    async def close(self) -> None:
        """Close MongoDB connection."""
        if self.client and self._initialized:
            self.client.close()
            self._initialized = False

    async def __aenter__(self) -> "MongoDBManager":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def init_indexes(self) -> None:
        """Initialize database indexes."""
        await self.initialize()

        # Channels collection
        await self.channels.create_index("id", unique=True)
        await self.channels.create_index([("status", 1), ("should_sync", 1)])
        await self.channels.create_index("user_id")

        # Videos collection
        await self.videos.create_index([("channel_id", 1), ("id", 1)], unique=True)
        await self.videos.create_index("state")
        await self.videos.create_index("published_at")

        # Users collection
        await self.users.create_index("id", unique=True)
        await self.users.create_index("email")

    async def ping(self) -> bool:
        """Check that the server is reachable."""
        await self.initialize()
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    @staticmethod
    def _strip_id(doc: dict[str, Any]) -> dict[str, Any]:
        doc.pop("_id", None)
        return doc

    # Channel operations

    async def get_channel(self, channel_id: str) -> Channel | None:
        """Retrieve channel from MongoDB.

        Args:
            channel_id: Channel identifier

        Returns:
            Channel, or None if not found
        """
        await self.initialize()
        try:
            doc = await self.channels.find_one({"id": channel_id})
        except PyMongoError as e:
            raise DatabaseError(f"Failed to load channel {channel_id}: {e}") from e
        return Channel.model_validate(self._strip_id(doc)) if doc else None

    async def query_channels(
        self,
        statuses: Sequence[ParticipationStatus],
        should_sync: bool | None = None,
    ) -> list[Channel]:
        """List channels by participation status.

        Args:
            statuses: Accepted participation statuses
            should_sync: Optional filter on the should-sync flag

        Returns:
            List of channels
        """
        await self.initialize()
        query: dict[str, Any] = {"status": {"$in": [s.value for s in statuses]}}
        if should_sync is not None:
            query["should_sync"] = should_sync

        results = []
        try:
            async for doc in self.channels.find(query):
                results.append(Channel.model_validate(self._strip_id(doc)))
        except PyMongoError as e:
            raise DatabaseError(f"Failed to query channels: {e}") from e

        return results

    async def upsert_channel(self, channel: Channel) -> None:
        """Save channel to MongoDB, replacing any stored version."""
        await self.upsert_channels([channel])

    async def upsert_channels(self, channels: Sequence[Channel]) -> None:
        """Save channels to MongoDB with one bulk write."""
        if not channels:
            return
        await self.initialize()
        ops = [
            ReplaceOne({"id": channel.id}, channel.model_dump_for_mongo(), upsert=True)
            for channel in channels
        ]
        try:
            await self.channels.bulk_write(ops, ordered=False)
        except PyMongoError as e:
            raise DatabaseError(f"Failed to save {len(channels)} channels: {e}") from e

    # Video operations

    async def get_video(self, channel_id: str, video_id: str) -> Video | None:
        """Retrieve a video by channel and video ID."""
        await self.initialize()
        try:
            doc = await self.videos.find_one({"channel_id": channel_id, "id": video_id})
        except PyMongoError as e:
            raise DatabaseError(f"Failed to load video {video_id}: {e}") from e
        return Video.model_validate(self._strip_id(doc)) if doc else None

    async def list_videos_by_channel(self, channel_id: str) -> list[Video]:
        """List all stored videos of a channel, newest first."""
        await self.initialize()
        results = []
        try:
            cursor = self.videos.find({"channel_id": channel_id}).sort("published_at", -1)
            async for doc in cursor:
                results.append(Video.model_validate(self._strip_id(doc)))
        except PyMongoError as e:
            raise DatabaseError(f"Failed to list videos of {channel_id}: {e}") from e
        return results

    async def list_videos_by_state(
        self,
        states: Sequence[VideoState],
        channel_id: str | None = None,
    ) -> list[Video]:
        """List videos in any of the given states.

        Args:
            states: Accepted video states
            channel_id: Optional channel filter

        Returns:
            List of videos
        """
        await self.initialize()
        query: dict[str, Any] = {"state": {"$in": [s.value for s in states]}}
        if channel_id:
            query["channel_id"] = channel_id

        results = []
        try:
            async for doc in self.videos.find(query).sort("published_at", -1):
                results.append(Video.model_validate(self._strip_id(doc)))
        except PyMongoError as e:
            raise DatabaseError(f"Failed to list videos by state: {e}") from e
        return results

    async def upsert_video(self, video: Video) -> None:
        """Save one video, replacing any stored version."""
        await self.upsert_videos([video])

    async def upsert_videos(self, videos: Sequence[Video]) -> None:
        """Save videos with one bulk write."""
        if not videos:
            return
        await self.initialize()
        ops = [
            ReplaceOne(
                {"channel_id": video.channel_id, "id": video.id},
                video.model_dump_for_mongo(),
                upsert=True,
            )
            for video in videos
        ]
        try:
            await self.videos.bulk_write(ops, ordered=False)
        except PyMongoError as e:
            raise DatabaseError(f"Failed to save {len(videos)} videos: {e}") from e

    # User operations

    async def get_user(self, user_id: str) -> User | None:
        await self.initialize()
        try:
            doc = await self.users.find_one({"id": user_id})
        except PyMongoError as e:
            raise DatabaseError(f"Failed to load user {user_id}: {e}") from e
        return User.model_validate(self._strip_id(doc)) if doc else None

    async def upsert_user(self, user: User) -> None:
        await self.initialize()
        try:
            await self.users.replace_one({"id": user.id}, user.model_dump_for_mongo(), upsert=True)
        except PyMongoError as e:
            raise DatabaseError(f"Failed to save user {user.id}: {e}") from e
