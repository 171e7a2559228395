"""Frequency classifier - buckets channels into sync cadences."""

from collections.abc import Mapping

from ytsync.core.constants import DEFAULT_FREQUENCY_TIERS

from .schemas import ChannelStatistics, FrequencyBucket


def classify(
    statistics: ChannelStatistics | None,
    tiers: Mapping[str, int] | None = None,
) -> FrequencyBucket:
    """
    Map channel statistics to exactly one frequency bucket.

    Tiers are checked from the highest subscriber threshold down; the first
    threshold the subscriber count reaches wins. Missing, zero or negative
    counts fall into the lowest tier.

    Args:
        statistics: Channel statistics (may be None)
        tiers: Bucket name -> minimum subscriber count

    Returns:
        FrequencyBucket for the channel
    """
    if tiers is None:
        tiers = DEFAULT_FREQUENCY_TIERS

    ordered = sorted(
        ((FrequencyBucket(name), threshold) for name, threshold in tiers.items()),
        key=lambda tier: tier[1],
        reverse=True,
    )
    if not ordered:
        raise ValueError("At least one frequency tier is required")

    subscribers = statistics.subscriber_count if statistics else None
    if subscribers is None or subscribers < 0:
        return ordered[-1][0]

    for bucket, threshold in ordered:
        if subscribers >= threshold:
            return bucket

    return ordered[-1][0]


def is_due(
    statistics: ChannelStatistics | None,
    active_buckets: set[FrequencyBucket],
    tiers: Mapping[str, int] | None = None,
) -> bool:
    """Check whether a channel's bucket is scheduled for this cycle."""
    return classify(statistics, tiers) in active_buckets
