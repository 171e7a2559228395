"""Application constants.

This module centralizes sync-engine constants for:
- Application metadata
- Event topic names
- Frequency tier defaults
- External API limits
"""

APP_NAME = "YouTube Sync"
APP_VERSION = "0.3.0"

# =============================================================================
# Event Topics
# =============================================================================

CHANNEL_EVENTS_TOPIC = "channelEvents"
USER_EVENTS_TOPIC = "userEvents"
CREATE_VIDEO_EVENTS_TOPIC = "createVideoEvents"
UPLOAD_VIDEO_EVENTS_TOPIC = "uploadVideoEvents"

# =============================================================================
# Frequency Tiers
# =============================================================================

# Bucket name -> minimum subscriber count. The tier with the lowest threshold
# is also the fallback for missing or negative statistics.
DEFAULT_FREQUENCY_TIERS: dict[str, int] = {
    "hourly": 100_000,
    "daily": 1_000,
    "weekly": 0,
}

# =============================================================================
# YouTube Data API
# =============================================================================

YOUTUBE_MAX_PAGE_SIZE = 50
YOUTUBE_PROCESSED_STATUS = "processed"
YOUTUBE_PRIVATE_STATUS = "private"
