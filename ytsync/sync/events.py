"""Lifecycle events published to downstream consumers.

Each event kind is its own model with a literal ``subject`` tag; the
``LifecycleEvent`` union is discriminated on that tag so a payload decodes to
exactly one kind without relying on Python type identity.
"""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ytsync.channel.schemas import Channel, User, Video, VideoState


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime


class ChannelSpotted(_Event):
    """A channel was seen for the first time (or re-fetched) for a user."""

    subject: Literal["channelSpotted"] = "channelSpotted"
    channel: Channel

    @classmethod
    def of(cls, channel: Channel, timestamp: datetime) -> "ChannelSpotted":
        return cls(channel=channel.redacted(), timestamp=timestamp)


class IngestChannel(_Event):
    """A channel's videos are being ingested in this cycle."""

    subject: Literal["ingestChannel"] = "ingestChannel"
    channel: Channel

    @classmethod
    def of(cls, channel: Channel, timestamp: datetime) -> "IngestChannel":
        return cls(channel=channel.redacted(), timestamp=timestamp)


class UserCreated(_Event):
    subject: Literal["userCreated"] = "userCreated"
    user: User

    @classmethod
    def of(cls, user: User, timestamp: datetime) -> "UserCreated":
        return cls(user=user.redacted(), timestamp=timestamp)


VideoSubject = Literal[
    "New",
    "Publishing",
    "PublishFailed",
    "PublishSucceeded",
    "UploadStarted",
    "UploadFailed",
    "UploadSucceeded",
]


class VideoEvent(_Event):
    """A video reached ``subject`` state."""

    subject: VideoSubject
    video: Video

    @classmethod
    def of(cls, video: Video, timestamp: datetime) -> "VideoEvent":
        return cls(subject=video.state.value, video=video, timestamp=timestamp)

    @property
    def state(self) -> VideoState:
        return VideoState(self.subject)

    @property
    def video_id(self) -> str:
        return self.video.id

    @property
    def channel_id(self) -> str:
        return self.video.channel_id


LifecycleEvent = Annotated[
    Union[ChannelSpotted, IngestChannel, UserCreated, VideoEvent],
    Field(discriminator="subject"),
]

_event_adapter: TypeAdapter[LifecycleEvent] = TypeAdapter(LifecycleEvent)


def encode_event(event: LifecycleEvent) -> str:
    """Serialize an event to its JSON wire form."""
    return event.model_dump_json()


def decode_event(raw: str | bytes) -> LifecycleEvent:
    """Parse a JSON payload into the event kind named by its subject."""
    return _event_adapter.validate_json(raw)
