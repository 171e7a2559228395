"""YouTube Data API v3 client - fetches channel and video metadata on an owner's behalf."""

import asyncio
import logging
from datetime import datetime
from typing import Any

import requests

from ytsync.core.config import Settings
from ytsync.core.constants import YOUTUBE_MAX_PAGE_SIZE
from ytsync.core.exceptions import AuthRevokedError, TransientExternalError
from ytsync.core.http_session import build_session

from .schemas import (
    Channel,
    ChannelMetadata,
    ChannelStatistics,
    Credentials,
    Thumbnails,
    VideoMetadata,
)

logger = logging.getLogger(__name__)


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _parse_thumbnails(data: dict[str, Any] | None) -> Thumbnails:
    data = data or {}

    def url(size: str) -> str | None:
        return (data.get(size) or {}).get("url")

    return Thumbnails(
        default=url("default"),
        medium=url("medium"),
        high=url("high"),
        standard=url("standard"),
        max_res=url("maxres"),
    )


def _error_reason(response: requests.Response) -> str:
    """Extract the OAuth / API error code from an error response."""
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error")
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        errors = error.get("errors") or [{}]
        return errors[0].get("reason") or error.get("status") or ""
    return ""


def uploads_playlist_for(channel: Channel) -> str:
    """Uploads playlist of a channel ("UC..." channels map to "UU...")."""
    if channel.uploads_playlist_id:
        return channel.uploads_playlist_id
    return "UU" + channel.id[2:]


class YouTubeClient:
    """
    Source client backed by the YouTube Data API.

    Requests are blocking (requests); the async methods run them in a worker
    thread. Revoked grants raise AuthRevokedError, everything else that goes
    wrong raises TransientExternalError.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_base_url: str = "https://www.googleapis.com/youtube/v3",
        token_url: str = "https://oauth2.googleapis.com/token",
        timeout: int = 30,
        session: requests.Session | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base_url = api_base_url.rstrip("/")
        self.token_url = token_url
        self.timeout = timeout
        self.session = session or build_session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "YouTubeClient":
        return cls(
            client_id=settings.youtube_client_id,
            client_secret=settings.youtube_client_secret,
            api_base_url=settings.youtube_api_base_url,
            token_url=settings.youtube_token_url,
            timeout=settings.youtube_api_timeout,
        )

    def close(self) -> None:
        self.session.close()

    async def fetch_channel(self, credentials: Credentials) -> ChannelMetadata:
        return await asyncio.to_thread(self.get_channel, credentials)

    async def fetch_recent_videos(self, channel: Channel, limit: int) -> list[VideoMetadata]:
        return await asyncio.to_thread(self.get_recent_videos, channel, limit)

    # Blocking implementation

    def refresh_access_token(self, credentials: Credentials) -> str:
        """
        Exchange the refresh token for a new access token.

        Raises:
            AuthRevokedError: If the grant was revoked or no refresh token exists
            TransientExternalError: On network or server errors
        """
        if not credentials.refresh_token:
            raise AuthRevokedError("No refresh token stored for channel owner")

        try:
            response = self.session.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": credentials.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientExternalError(f"Token refresh failed: {e}") from e

        if response.status_code in (400, 401) and _error_reason(response) == "invalid_grant":
            raise AuthRevokedError("Refresh token expired or revoked (invalid_grant)")
        if not response.ok:
            raise TransientExternalError(
                f"Token refresh failed with HTTP {response.status_code}: {_error_reason(response)}"
            )

        token = response.json().get("access_token")
        if not token:
            raise TransientExternalError("Token endpoint returned no access token")
        return token

    def _api_get(
        self,
        resource: str,
        params: dict[str, Any],
        credentials: Credentials,
        token: str | None,
    ) -> tuple[dict[str, Any], str]:
        """GET an API resource, refreshing the access token once on 401.

        Returns:
            Tuple of (response JSON, access token that worked)
        """
        url = f"{self.api_base_url}/{resource}"

        for attempt in range(2):
            if token is None:
                token = self.refresh_access_token(credentials)

            try:
                response = self.session.get(
                    url,
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise TransientExternalError(f"GET {resource} failed: {e}") from e

            if response.status_code == 401 and attempt == 0:
                token = None
                continue

            if not response.ok:
                raise TransientExternalError(
                    f"GET {resource} failed with HTTP {response.status_code}: {_error_reason(response)}"
                )

            return response.json(), token

        raise TransientExternalError(f"GET {resource} unauthorized after token refresh")

    def get_channel(self, credentials: Credentials) -> ChannelMetadata:
        """Fetch the authorized user's channel."""
        data, token = self._api_get(
            "channels",
            {"part": "snippet,statistics,contentDetails", "mine": "true"},
            credentials,
            credentials.access_token,
        )

        items = data.get("items") or []
        if not items:
            raise TransientExternalError("Authorized account has no YouTube channel")

        item = items[0]
        snippet = item.get("snippet", {})
        stats = item.get("statistics", {})

        return ChannelMetadata(
            channel_id=item["id"],
            title=snippet.get("title", ""),
            description=snippet.get("description"),
            thumbnails=_parse_thumbnails(snippet.get("thumbnails")),
            published_at=_parse_datetime(snippet.get("publishedAt")),
            statistics=ChannelStatistics(
                view_count=_parse_int(stats.get("viewCount")),
                comment_count=_parse_int(stats.get("commentCount")),
                subscriber_count=_parse_int(stats.get("subscriberCount")),
                video_count=_parse_int(stats.get("videoCount")),
            ),
            uploads_playlist_id=item.get("contentDetails", {})
            .get("relatedPlaylists", {})
            .get("uploads"),
            access_token=token if token != credentials.access_token else None,
        )

    def get_recent_videos(self, channel: Channel, limit: int) -> list[VideoMetadata]:
        """
        Fetch up to ``limit`` most recent uploads of a channel.

        Strategy:
        1. Page through the uploads playlist to collect video IDs
        2. Fetch snippet, status and duration for those IDs in batches of 50
        """
        if limit <= 0:
            return []

        credentials = channel.credentials or Credentials()
        token = credentials.access_token
        playlist_id = uploads_playlist_for(channel)

        video_ids: list[str] = []
        page_token: str | None = None
        while len(video_ids) < limit:
            params: dict[str, Any] = {
                "part": "contentDetails",
                "playlistId": playlist_id,
                "maxResults": min(YOUTUBE_MAX_PAGE_SIZE, limit - len(video_ids)),
            }
            if page_token:
                params["pageToken"] = page_token

            data, token = self._api_get("playlistItems", params, credentials, token)
            for item in data.get("items", []):
                video_id = item.get("contentDetails", {}).get("videoId")
                if video_id and video_id not in video_ids:
                    video_ids.append(video_id)

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        video_ids = video_ids[:limit]
        details: dict[str, VideoMetadata] = {}

        for start in range(0, len(video_ids), YOUTUBE_MAX_PAGE_SIZE):
            batch = video_ids[start : start + YOUTUBE_MAX_PAGE_SIZE]
            data, token = self._api_get(
                "videos",
                {
                    "part": "snippet,contentDetails,status,statistics",
                    "id": ",".join(batch),
                    "maxResults": len(batch),
                },
                credentials,
                token,
            )
            for item in data.get("items", []):
                snippet = item.get("snippet", {})
                status = item.get("status", {})
                details[item["id"]] = VideoMetadata(
                    video_id=item["id"],
                    title=snippet.get("title", "Unknown"),
                    description=snippet.get("description"),
                    thumbnails=_parse_thumbnails(snippet.get("thumbnails")),
                    duration=item.get("contentDetails", {}).get("duration"),
                    published_at=_parse_datetime(snippet.get("publishedAt")),
                    upload_status=status.get("uploadStatus"),
                    privacy_status=status.get("privacyStatus"),
                    view_count=_parse_int(item.get("statistics", {}).get("viewCount")),
                )

        # Deleted videos can linger in the playlist without video details
        videos = [details[v] for v in video_ids if v in details]
        logger.debug("Fetched %d videos for channel %s", len(videos), channel.id)
        return videos
