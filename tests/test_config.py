"""Tests for settings and channel construction."""

from pathlib import Path

import pytest

from calclane.channel import InMemoryChannel, LMDBChannel
from calclane.config import Settings, create_channels


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Test the default configuration."""
        settings = Settings()

        assert settings.region == "eu-central-1"
        assert settings.wait_seconds == 20
        assert settings.cycle_interval == 1.0
        assert settings.conversion_rate == 1.1

    def test_unknown_channel_backend(self):
        """Test that only known backends are accepted."""
        with pytest.raises(ValueError):
            Settings(channel="kafka")

    def test_queues_must_differ(self):
        """Test that task and result queues cannot share a channel."""
        with pytest.raises(ValueError):
            Settings(task_queue="q", result_queue="https://sqs.example/123/q")


class TestCreateChannels:
    """Tests for create_channels."""

    def test_memory_channels(self):
        """Test in-memory channel construction."""
        task_channel, result_channel = create_channels(Settings(channel="memory", visibility_timeout=5))

        assert isinstance(task_channel, InMemoryChannel)
        assert task_channel.name == "tasks"
        assert result_channel.name == "results"
        assert task_channel.visibility_timeout == 5

    @pytest.mark.asyncio
    async def test_lmdb_channels_use_queue_directories(self, tmp_path: Path):
        """Test that each queue gets its own LMDB directory named after the queue."""
        settings = Settings(
            channel="lmdb",
            db_path=str(tmp_path),
            task_queue="https://sqs.example/123/task-queue",
            result_queue="result-queue",
        )

        task_channel, result_channel = create_channels(settings)
        await task_channel.close()
        await result_channel.close()

        assert isinstance(task_channel, LMDBChannel)
        assert (tmp_path / "task-queue").is_dir()
        assert (tmp_path / "result-queue").is_dir()
