"""Tests for the frequency classifier."""

import pytest

from ytsync.channel.frequency import classify, is_due
from ytsync.channel.schemas import ChannelStatistics, FrequencyBucket


class TestClassify:
    """Test bucket selection under the default tiers."""

    @pytest.mark.parametrize(
        "subscribers,expected",
        [
            (250_000, FrequencyBucket.HOURLY),
            (100_000, FrequencyBucket.HOURLY),
            (99_999, FrequencyBucket.DAILY),
            (1_000, FrequencyBucket.DAILY),
            (999, FrequencyBucket.WEEKLY),
            (0, FrequencyBucket.WEEKLY),
        ],
    )
    def test_thresholds(self, subscribers, expected):
        assert classify(ChannelStatistics(subscriber_count=subscribers)) is expected

    def test_missing_statistics_is_lowest_tier(self):
        assert classify(None) is FrequencyBucket.WEEKLY
        assert classify(ChannelStatistics()) is FrequencyBucket.WEEKLY

    def test_negative_count_is_lowest_tier(self):
        assert classify(ChannelStatistics(subscriber_count=-5)) is FrequencyBucket.WEEKLY

    def test_custom_tiers(self):
        tiers = {"hourly": 10, "daily": 5, "weekly": 1}

        assert classify(ChannelStatistics(subscriber_count=12), tiers) is FrequencyBucket.HOURLY
        assert classify(ChannelStatistics(subscriber_count=5), tiers) is FrequencyBucket.DAILY
        # Below every threshold still lands in the lowest tier
        assert classify(ChannelStatistics(subscriber_count=0), tiers) is FrequencyBucket.WEEKLY

    def test_tier_order_does_not_depend_on_mapping_order(self):
        tiers = {"weekly": 0, "hourly": 500, "daily": 50}
        assert classify(ChannelStatistics(subscriber_count=60), tiers) is FrequencyBucket.DAILY

    def test_empty_tiers_rejected(self):
        with pytest.raises(ValueError):
            classify(ChannelStatistics(subscriber_count=1), {})


def test_is_due():
    stats = ChannelStatistics(subscriber_count=5_000)

    assert is_due(stats, {FrequencyBucket.DAILY})
    assert is_due(stats, {FrequencyBucket.DAILY, FrequencyBucket.WEEKLY})
    assert not is_due(stats, {FrequencyBucket.WEEKLY})
    assert not is_due(stats, set())
