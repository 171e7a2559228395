"""Storage and event transport adapters.

Usage:
    async with MongoDBManager(settings) as db, RedisManager.from_settings(settings) as bus:
        orchestrator = SyncOrchestrator(settings, db, source, publisher, bus)
"""

from ytsync.database.manager import MongoDBManager
from ytsync.database.redis import RedisManager

__all__ = [
    "MongoDBManager",
    "RedisManager",
]
