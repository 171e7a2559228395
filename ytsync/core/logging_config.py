"""Structured logging configuration for the sync engine."""

import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

LOGGER_NAME = "ytsync"

# Driver loggers that flood DEBUG output during a cycle
NOISY_LOGGERS = ("urllib3", "pymongo", "asyncio")

FILE_LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    rich_tracebacks: bool = True,
) -> logging.Logger:
    """
    Configure the ``ytsync`` logger for a CLI run.

    Console output goes through rich; an optional log file receives every
    record at DEBUG regardless of ``level``.

    Args:
        level: Console logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        rich_tracebacks: Enable rich traceback formatting

    Returns:
        The configured ``ytsync`` logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(logging.DEBUG if log_file else numeric_level)
    root.handlers.clear()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=rich_tracebacks,
        tracebacks_show_locals=numeric_level <= logging.DEBUG,
        show_path=False,
        markup=False,
    )
    rich_handler.setLevel(numeric_level)
    root.addHandler(rich_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        root.addHandler(file_handler)

    root.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    root.debug("Logging initialized (level=%s, file=%s)", level, log_file)
    return root


def log_channel_sync_event(
    logger_instance: logging.Logger,
    channel_id: str,
    event: str,
    videos_observed: int | None = None,
    videos_pending: int | None = None,
    error: str | None = None,
) -> None:
    """
    Log channel sync events.

    Args:
        logger_instance: Logger to use
        channel_id: YouTube channel ID
        event: Event type (started, completed, revoked, failed)
        videos_observed: Number of videos fetched from the source
        videos_pending: Number of videos left needing attention
        error: Error message if failed
    """
    extra: dict[str, Any] = {
        "channel_id": channel_id,
        "event": event,
    }

    if videos_observed is not None:
        extra["videos_observed"] = videos_observed
    if videos_pending is not None:
        extra["videos_pending"] = videos_pending
    if error:
        extra["error"] = error

    if event == "failed":
        logger_instance.error(f"❌ Channel sync failed: {channel_id} ({error})", extra=extra)
    elif event == "revoked":
        logger_instance.warning(f"⛔ Channel access revoked, opting out: {channel_id}", extra=extra)
    elif event == "completed":
        logger_instance.info(
            f"✅ Channel sync complete: {channel_id} "
            f"({videos_observed} videos, {videos_pending} pending)",
            extra=extra,
        )
    else:
        logger_instance.info(f"🔄 Channel sync {event}: {channel_id}", extra=extra)


def log_video_event(
    logger_instance: logging.Logger,
    channel_id: str,
    video_id: str,
    state: str,
    error: str | None = None,
) -> None:
    """
    Log a video publish-state transition.

    Args:
        logger_instance: Logger to use
        channel_id: Owning channel ID
        video_id: YouTube video ID
        state: New video state
        error: Error message if the transition is a failure
    """
    extra: dict[str, Any] = {
        "channel_id": channel_id,
        "video_id": video_id,
        "state": state,
    }
    if error:
        extra["error"] = error

    if error:
        logger_instance.error(f"❌ Video {video_id} -> {state}: {error}", extra=extra)
    else:
        logger_instance.info(f"📼 Video {video_id} -> {state}", extra=extra)
