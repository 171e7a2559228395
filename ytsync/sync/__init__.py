"""Sync engine: publish state machine, commands, events and orchestration."""

from .commands import HmacCommandVerifier, apply_command, sign_command
from .emitter import EventEmitter
from .events import (
    ChannelSpotted,
    IngestChannel,
    LifecycleEvent,
    UserCreated,
    VideoEvent,
    decode_event,
    encode_event,
)
from .orchestrator import SyncOrchestrator
from .publisher import PublishStateMachine
from .publisher_client import HttpPublisherClient

__all__ = [
    "SyncOrchestrator",
    "PublishStateMachine",
    "HttpPublisherClient",
    "EventEmitter",
    # Commands
    "HmacCommandVerifier",
    "apply_command",
    "sign_command",
    # Events
    "LifecycleEvent",
    "ChannelSpotted",
    "IngestChannel",
    "UserCreated",
    "VideoEvent",
    "encode_event",
    "decode_event",
]
