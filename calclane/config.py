"""Runtime settings and channel construction."""

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from calclane.channel import Channel, InMemoryChannel, LMDBChannel
from calclane.task.handlers import DEFAULT_CONVERSION_RATE

CHANNEL_BACKENDS = ("lmdb", "memory")


@dataclass(frozen=True)
class Settings:
    """Opaque inputs of the pipeline.

    Queue identifiers name the task and result channels; with the lmdb backend
    each becomes a directory under db_path. The region is passed through to
    channel implementations that need one.
    """

    task_queue: str = "tasks"
    result_queue: str = "results"
    region: str = "eu-central-1"
    channel: str = "lmdb"
    db_path: str = "/tmp/calclane"
    wait_seconds: float = 20
    cycle_interval: float = 1.0
    visibility_timeout: float = 30.0
    conversion_rate: float = DEFAULT_CONVERSION_RATE

    def __post_init__(self):
        if self.channel not in CHANNEL_BACKENDS:
            raise ValueError(f"Unknown channel backend '{self.channel}', expected one of {CHANNEL_BACKENDS}")
        if _queue_dir(self.db_path, self.task_queue) == _queue_dir(self.db_path, self.result_queue):
            raise ValueError("Task and result queues must be different channels")


def _queue_dir(db_path: str, queue: str) -> str:
    """Directory for a queue identifier; URLs are reduced to their last path segment."""
    name = queue.rstrip("/").rsplit("/", 1)[-1] or queue
    return str(Path(db_path) / name)


def create_channel(settings: Settings, queue: str) -> Channel:
    if settings.channel == "lmdb":
        return LMDBChannel(
            path=_queue_dir(settings.db_path, queue),
            name=queue,
            visibility_timeout=settings.visibility_timeout,
        )
    return InMemoryChannel(name=queue, visibility_timeout=settings.visibility_timeout)


def create_channels(settings: Settings) -> Tuple[Channel, Channel]:
    """Create the task and result channels.

    Returns:
        Tuple of (task channel, result channel).
    """
    return (
        create_channel(settings, settings.task_queue),
        create_channel(settings, settings.result_queue),
    )


__all__ = ["Settings", "create_channel", "create_channels"]
