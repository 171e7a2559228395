"""Event emitter - packages lifecycle events and hands them to the transport."""

import logging
from collections.abc import Sequence

from .events import LifecycleEvent, encode_event
from .interfaces import EventTransport

logger = logging.getLogger(__name__)


class EventEmitter:
    """Fire-and-forget publisher for lifecycle events.

    Transport failures are logged and reported through the return value; they
    never propagate, so a broken event bus cannot roll back persisted state.
    """

    def __init__(self, transport: EventTransport) -> None:
        self.transport = transport

    async def emit(self, event: LifecycleEvent, topic: str) -> bool:
        """Publish one event.

        Returns:
            True if the transport accepted the event
        """
        try:
            delivered = await self.transport.publish(encode_event(event), topic)
        except Exception as e:
            logger.error("Failed to publish %s event to %s: %s", event.subject, topic, e)
            return False

        if not delivered:
            logger.warning("Transport dropped %s event for topic %s", event.subject, topic)
        return delivered

    async def emit_all(self, events: Sequence[LifecycleEvent], topic: str) -> bool:
        """Publish a batch of events with a single transport call.

        Returns:
            True if the transport accepted the batch (an empty batch is a no-op)
        """
        if not events:
            return True

        try:
            delivered = await self.transport.publish_all([encode_event(e) for e in events], topic)
        except Exception as e:
            logger.error("Failed to publish %d events to %s: %s", len(events), topic, e)
            return False

        if not delivered:
            logger.warning("Transport dropped batch of %d events for topic %s", len(events), topic)
        return delivered
