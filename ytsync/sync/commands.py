"""Administrative channel status transitions.

Every command carries a timestamp that must be strictly newer than the
channel's ``last_acted_at``; this rejects replayed and out-of-order messages.
"""

import hashlib
import hmac
from typing import NamedTuple

from ytsync.channel.schemas import (
    ACTIVE_STATUSES,
    Channel,
    ChannelAction,
    ChannelCommand,
    ParticipationStatus,
    SignedCommand,
)
from ytsync.core.exceptions import ValidationError

from .interfaces import CommandVerifier


class _Transition(NamedTuple):
    allowed_from: tuple[ParticipationStatus, ...]
    target: ParticipationStatus | None
    stops_sync: bool


_TRANSITIONS: dict[ChannelAction, _Transition] = {
    ChannelAction.SET_SHOULD_SYNC: _Transition(ACTIVE_STATUSES, None, False),
    ChannelAction.OPT_OUT: _Transition(ACTIVE_STATUSES, ParticipationStatus.OPTED_OUT, True),
    ChannelAction.SUSPEND: _Transition(ACTIVE_STATUSES, ParticipationStatus.SUSPENDED, True),
    ChannelAction.UNSUSPEND: _Transition(
        (ParticipationStatus.SUSPENDED,), ParticipationStatus.UNVERIFIED, False
    ),
    ChannelAction.VERIFY: _Transition(
        (ParticipationStatus.UNVERIFIED,), ParticipationStatus.VERIFIED, False
    ),
    ChannelAction.UNVERIFY: _Transition(
        (ParticipationStatus.VERIFIED,), ParticipationStatus.UNVERIFIED, False
    ),
}


def sign_command(command: ChannelCommand, key: str) -> str:
    """HMAC-SHA256 signature of a command's canonical form."""
    return hmac.new(key.encode(), command.canonical(), hashlib.sha256).hexdigest()


class HmacCommandVerifier:
    """Verifies command signatures with shared secrets.

    Owner actions are signed with a per-channel key derived from the owner
    secret (see ``channel_key``); privileged actions are signed with the
    operator key.
    """

    def __init__(self, owner_key: str, operator_key: str) -> None:
        self.owner_key = owner_key
        self.operator_key = operator_key

    def channel_key(self, channel_id: str) -> str:
        """Signing key handed to the owner of ``channel_id``."""
        return hmac.new(self.owner_key.encode(), channel_id.encode(), hashlib.sha256).hexdigest()

    def verify(self, channel: Channel, command: SignedCommand) -> bool:
        if command.message.action.privileged:
            key = self.operator_key
        else:
            key = self.channel_key(channel.id) if self.owner_key else ""

        if not key:
            return False

        expected = sign_command(command.message, key)
        return hmac.compare_digest(expected.encode(), command.signature.encode())


def apply_command(channel: Channel, command: SignedCommand, verifier: CommandVerifier) -> Channel:
    """
    Apply a signed command to a channel.

    Args:
        channel: Channel as currently stored
        command: Signed command
        verifier: Signature verifier

    Returns:
        Updated channel, with ``last_acted_at`` set to the command timestamp

    Raises:
        ValidationError: If the transition is not allowed from the current
            status, the signature is invalid or the timestamp is not newer
            than ``last_acted_at``
    """
    message = command.message
    transition = _TRANSITIONS[message.action]

    if channel.status not in transition.allowed_from:
        raise ValidationError(
            f"Can't {message.action.value} a channel in {channel.status.value} status. Permission denied."
        )

    if not verifier.verify(channel, command):
        raise ValidationError("Invalid request signature. Permission denied.")

    if channel.last_acted_at is not None and message.timestamp <= channel.last_acted_at:
        raise ValidationError("Stale or replayed command. Permission denied.")

    update: dict = {"last_acted_at": message.timestamp}

    if message.action is ChannelAction.SET_SHOULD_SYNC:
        if message.should_sync is None:
            raise ValidationError("set_should_sync requires a should_sync value")
        update["should_sync"] = message.should_sync

    if transition.target is not None:
        update["status"] = transition.target
    if transition.stops_sync:
        update["should_sync"] = False

    return channel.model_copy(update=update)
