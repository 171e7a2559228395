"""Tests for administrative channel commands."""

from datetime import timedelta

import pytest

from conftest import NOW, OPERATOR_KEY
from ytsync.channel.schemas import (
    ChannelAction,
    ChannelCommand,
    ParticipationStatus,
    SignedCommand,
)
from ytsync.core.exceptions import NotFoundError, ValidationError
from ytsync.sync.commands import HmacCommandVerifier, apply_command, sign_command


def _owner_command(verifier: HmacCommandVerifier, channel_id: str, action, timestamp, **fields):
    message = ChannelCommand(action=action, timestamp=timestamp, **fields)
    signature = sign_command(message, verifier.channel_key(channel_id))
    return SignedCommand(message=message, signature=signature)


def _operator_command(action, timestamp):
    message = ChannelCommand(action=action, timestamp=timestamp)
    return SignedCommand(message=message, signature=sign_command(message, OPERATOR_KEY))


class TestVerifier:
    """Test HMAC signature checks."""

    def test_owner_signature(self, verifier, make_channel):
        channel = make_channel()
        command = _owner_command(verifier, channel.id, ChannelAction.OPT_OUT, NOW)
        assert verifier.verify(channel, command)

    def test_owner_signature_bound_to_channel(self, verifier, make_channel):
        command = _owner_command(verifier, "UC_other", ChannelAction.OPT_OUT, NOW)
        assert not verifier.verify(make_channel(), command)

    def test_owner_cannot_sign_privileged_action(self, verifier, make_channel):
        channel = make_channel()
        command = _owner_command(verifier, channel.id, ChannelAction.SUSPEND, NOW)
        assert not verifier.verify(channel, command)

    def test_tampered_message(self, verifier, make_channel):
        channel = make_channel()
        command = _owner_command(
            verifier, channel.id, ChannelAction.SET_SHOULD_SYNC, NOW, should_sync=False
        )
        tampered = command.model_copy(
            update={"message": command.message.model_copy(update={"should_sync": True})}
        )
        assert not verifier.verify(channel, tampered)

    def test_missing_operator_key_rejects(self, make_channel):
        verifier = HmacCommandVerifier("owner", "")
        command = _operator_command(ChannelAction.SUSPEND, NOW)
        assert not verifier.verify(make_channel(), command)


class TestApplyCommand:
    """Test the participation status transitions."""

    def test_toggle_should_sync(self, verifier, make_channel):
        channel = make_channel(should_sync=False)
        command = _owner_command(
            verifier, channel.id, ChannelAction.SET_SHOULD_SYNC, NOW, should_sync=True
        )

        updated = apply_command(channel, command, verifier)

        assert updated.should_sync is True
        assert updated.status is ParticipationStatus.UNVERIFIED
        assert updated.last_acted_at == NOW

    def test_toggle_requires_value(self, verifier, make_channel):
        channel = make_channel()
        command = _owner_command(verifier, channel.id, ChannelAction.SET_SHOULD_SYNC, NOW)

        with pytest.raises(ValidationError):
            apply_command(channel, command, verifier)

    @pytest.mark.parametrize(
        "status", [ParticipationStatus.SUSPENDED, ParticipationStatus.OPTED_OUT]
    )
    def test_toggle_rejected_for_inactive_channel(self, verifier, make_channel, status):
        channel = make_channel(status=status, should_sync=False, last_acted_at=NOW)
        # Even a far-future timestamp is refused
        command = _owner_command(
            verifier,
            channel.id,
            ChannelAction.SET_SHOULD_SYNC,
            NOW + timedelta(days=365),
            should_sync=True,
        )

        with pytest.raises(ValidationError):
            apply_command(channel, command, verifier)

    @pytest.mark.parametrize(
        "status", [ParticipationStatus.UNVERIFIED, ParticipationStatus.VERIFIED]
    )
    def test_opt_out(self, verifier, make_channel, status):
        channel = make_channel(status=status, should_sync=True)
        command = _owner_command(verifier, channel.id, ChannelAction.OPT_OUT, NOW)

        updated = apply_command(channel, command, verifier)

        assert updated.status is ParticipationStatus.OPTED_OUT
        assert updated.should_sync is False

    def test_suspend_forces_sync_off(self, verifier, make_channel):
        channel = make_channel(status=ParticipationStatus.VERIFIED, should_sync=True)

        updated = apply_command(channel, _operator_command(ChannelAction.SUSPEND, NOW), verifier)

        assert updated.status is ParticipationStatus.SUSPENDED
        assert updated.should_sync is False

    def test_unsuspend_does_not_restore_sync(self, verifier, make_channel):
        channel = make_channel(status=ParticipationStatus.SUSPENDED, should_sync=False)

        updated = apply_command(channel, _operator_command(ChannelAction.UNSUSPEND, NOW), verifier)

        assert updated.status is ParticipationStatus.UNVERIFIED
        assert updated.should_sync is False

    def test_verify_and_unverify(self, verifier, make_channel):
        channel = make_channel(status=ParticipationStatus.UNVERIFIED)

        verified = apply_command(channel, _operator_command(ChannelAction.VERIFY, NOW), verifier)
        unverified = apply_command(
            verified,
            _operator_command(ChannelAction.UNVERIFY, NOW + timedelta(seconds=1)),
            verifier,
        )

        assert verified.status is ParticipationStatus.VERIFIED
        assert unverified.status is ParticipationStatus.UNVERIFIED

    def test_opted_out_is_final(self, verifier, make_channel):
        channel = make_channel(status=ParticipationStatus.OPTED_OUT, should_sync=False)

        for action in (ChannelAction.UNSUSPEND, ChannelAction.VERIFY, ChannelAction.SUSPEND):
            with pytest.raises(ValidationError):
                apply_command(channel, _operator_command(action, NOW), verifier)

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(seconds=-1)])
    def test_stale_timestamp_rejected(self, verifier, make_channel, offset):
        channel = make_channel(should_sync=True, last_acted_at=NOW)
        command = _owner_command(
            verifier, channel.id, ChannelAction.SET_SHOULD_SYNC, NOW + offset, should_sync=False
        )

        with pytest.raises(ValidationError, match="Stale"):
            apply_command(channel, command, verifier)

    def test_bad_signature_rejected(self, verifier, make_channel):
        channel = make_channel()
        message = ChannelCommand(action=ChannelAction.OPT_OUT, timestamp=NOW)

        with pytest.raises(ValidationError, match="signature"):
            apply_command(channel, SignedCommand(message=message, signature="00" * 32), verifier)

    def test_rejection_leaves_channel_untouched(self, verifier, make_channel):
        channel = make_channel(last_acted_at=NOW)
        before = channel.model_dump_json()
        command = _operator_command(ChannelAction.SUSPEND, NOW - timedelta(hours=1))

        with pytest.raises(ValidationError):
            apply_command(channel, command, verifier)

        assert channel.model_dump_json() == before

    def test_naive_timestamp_treated_as_utc(self, verifier, make_channel):
        channel = make_channel(last_acted_at=NOW)
        command = _operator_command(
            ChannelAction.SUSPEND, (NOW + timedelta(minutes=1)).replace(tzinfo=None)
        )

        updated = apply_command(channel, command, verifier)

        assert updated.last_acted_at == NOW + timedelta(minutes=1)


class TestApplyChannelCommand:
    """Test the orchestrator entry point against the store."""

    @pytest.mark.asyncio
    async def test_persists_accepted_command(self, orchestrator, store, verifier, make_channel):
        channel = make_channel(should_sync=True)
        store.channels[channel.id] = channel

        updated = await orchestrator.apply_channel_command(
            channel.id, _owner_command(verifier, channel.id, ChannelAction.OPT_OUT, NOW)
        )

        assert store.channels[channel.id] == updated
        assert updated.status is ParticipationStatus.OPTED_OUT

    @pytest.mark.asyncio
    async def test_stale_command_leaves_store_unchanged(self, orchestrator, store, verifier, make_channel):
        channel = make_channel(should_sync=True, last_acted_at=NOW)
        store.channels[channel.id] = channel
        before = channel.model_dump_json()

        command = _owner_command(
            verifier, channel.id, ChannelAction.SET_SHOULD_SYNC, NOW, should_sync=False
        )
        with pytest.raises(ValidationError):
            await orchestrator.apply_channel_command(channel.id, command)

        assert store.channels[channel.id].model_dump_json() == before
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_suspended_toggle_rejected(self, orchestrator, store, verifier, make_channel):
        channel = make_channel(status=ParticipationStatus.SUSPENDED, should_sync=False)
        store.channels[channel.id] = channel

        command = _owner_command(
            verifier, channel.id, ChannelAction.SET_SHOULD_SYNC, NOW, should_sync=True
        )
        with pytest.raises(ValidationError):
            await orchestrator.apply_channel_command(channel.id, command)

        assert store.channels[channel.id].should_sync is False

    @pytest.mark.asyncio
    async def test_unknown_channel(self, orchestrator, verifier):
        command = _owner_command(verifier, "UC_missing", ChannelAction.OPT_OUT, NOW)

        with pytest.raises(NotFoundError):
            await orchestrator.apply_channel_command("UC_missing", command)
