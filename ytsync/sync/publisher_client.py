"""HTTP client for the publishing backend."""

import asyncio
import logging
from typing import Any

import requests

from ytsync.channel.schemas import Channel, Video
from ytsync.core.config import Settings
from ytsync.core.exceptions import PublishError, TransientExternalError, UploadError
from ytsync.core.http_session import build_session

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class HttpPublisherClient:
    """
    REST adapter for the publishing backend.

    Endpoints:
        POST /channels/{publisher_channel_id}/videos           -> {"id": "<handle>"}
        PUT  /channels/{publisher_channel_id}/videos/{handle}/media

    4xx responses are rejections (PublishError / UploadError). Network failures
    and 5xx responses raise TransientExternalError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: int = 120,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self.session = session or build_session(headers=headers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpPublisherClient":
        return cls(
            base_url=settings.publisher_url,
            api_key=settings.publisher_api_key,
            timeout=settings.publisher_timeout,
        )

    def close(self) -> None:
        self.session.close()

    async def create_record(self, channel: Channel, video: Video) -> str:
        return await asyncio.to_thread(self.create_record_sync, channel, video)

    async def upload_media(self, channel: Channel, video: Video) -> None:
        await asyncio.to_thread(self.upload_media_sync, channel, video)

    @staticmethod
    def _channel_ref(channel: Channel) -> str:
        return channel.publisher_channel_id or channel.id

    @staticmethod
    def _record_body(video: Video) -> dict[str, Any]:
        return {
            "youtubeVideoId": video.id,
            "youtubeChannelId": video.channel_id,
            "title": video.title,
            "description": video.description,
            "duration": video.duration,
            "publishedAt": video.published_at.isoformat() if video.published_at else None,
            "thumbnails": video.thumbnails.model_dump(),
            "url": video.url,
        }

    def create_record_sync(self, channel: Channel, video: Video) -> str:
        """
        Create the record for a video.

        The YouTube video ID is sent as the idempotency key, so a backend that
        deduplicates on it turns a repeated attempt into a no-op.

        Returns:
            Handle of the created record
        """
        url = f"{self.base_url}/channels/{self._channel_ref(channel)}/videos"
        try:
            response = self.session.post(
                url,
                json=self._record_body(video),
                headers={"Idempotency-Key": video.id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientExternalError(f"Create record for {video.id} failed: {e}") from e

        if response.status_code >= 500:
            raise TransientExternalError(
                f"Publishing backend error {response.status_code}: {_error_message(response)}"
            )
        if not response.ok:
            raise PublishError(
                f"Publishing backend rejected {video.id} ({response.status_code}): "
                f"{_error_message(response)}"
            )

        handle = response.json().get("id")
        if handle is None:
            raise PublishError(f"Publishing backend returned no record id for {video.id}")

        logger.debug("Created record %s for video %s", handle, video.id)
        return str(handle)

    def upload_media_sync(self, channel: Channel, video: Video) -> None:
        """Ask the backend to ingest the media of an already created record."""
        if not video.publish_handle:
            raise UploadError(f"Video {video.id} has no record handle to upload to")

        url = (
            f"{self.base_url}/channels/{self._channel_ref(channel)}"
            f"/videos/{video.publish_handle}/media"
        )
        try:
            response = self.session.put(
                url,
                json={"youtubeVideoId": video.id, "sourceUrl": video.url},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientExternalError(f"Upload media for {video.id} failed: {e}") from e

        if response.status_code >= 500:
            raise TransientExternalError(
                f"Publishing backend error {response.status_code}: {_error_message(response)}"
            )
        if not response.ok:
            raise UploadError(
                f"Publishing backend rejected media for {video.id} ({response.status_code}): "
                f"{_error_message(response)}"
            )
