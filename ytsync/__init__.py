"""YouTube Sync - mirror YouTube channels and push their videos to a publishing backend."""

from ytsync.core.constants import APP_VERSION
from ytsync.sync.orchestrator import SyncOrchestrator

__version__ = APP_VERSION
__all__ = ["SyncOrchestrator"]
