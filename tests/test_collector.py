"""Tests for the collector loop and the result store."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from calclane.broker import JSONSerializer
from calclane.channel import InMemoryChannel
from calclane.collector import ResultCollector
from calclane.exceptions import ChannelError
from calclane.loop import CycleOutcome
from calclane.result import InMemoryResultStore
from calclane.task import AccruedInterest, ConvertedAmount, Result


def _result(task_id: str = "task-1", interest: float = 50.0) -> Result:
    return Result(
        task_id=task_id,
        type="calculate_interest",
        outcome=AccruedInterest(interest=interest),
        processed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestResultCollector:
    """Tests for ResultCollector.run_once."""

    @pytest.mark.asyncio
    async def test_idle_when_channel_empty(self, collector: ResultCollector):
        """Test that an empty result channel yields an idle cycle."""
        assert await collector.run_once() == CycleOutcome.IDLE

    @pytest.mark.asyncio
    async def test_result_is_appended_and_acknowledged(
        self,
        collector: ResultCollector,
        result_channel: InMemoryChannel,
        store: InMemoryResultStore,
        serializer: JSONSerializer,
    ):
        """Test that a decoded result lands in the store."""
        await result_channel.send(serializer.encode_result(_result()))

        assert await collector.run_once() == CycleOutcome.COMPLETED

        assert await store.snapshot() == (_result(),)
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_malformed_result_is_dropped(
        self,
        collector: ResultCollector,
        result_channel: InMemoryChannel,
        store: InMemoryResultStore,
    ):
        """Test the poison-message drain for undecodable result bodies."""
        await result_channel.send(b"\x00garbage")

        assert await collector.run_once() == CycleOutcome.DROPPED

        assert await store.count() == 0
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_non_finite_processed_at_is_dropped(
        self,
        collector: ResultCollector,
        result_channel: InMemoryChannel,
        store: InMemoryResultStore,
    ):
        """Test that a NaN processedAt is drained instead of redelivered forever."""
        await result_channel.send(
            b'{"taskId": "t-1", "type": "calculate_interest", "result": {"interest": 1}, "processedAt": NaN}'
        )

        assert await collector.run_once() == CycleOutcome.DROPPED

        assert await store.count() == 0
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_unknown_result_type_is_dropped(
        self,
        collector: ResultCollector,
        result_channel: InMemoryChannel,
        store: InMemoryResultStore,
    ):
        """Test that a result of an unknown type is dropped."""
        await result_channel.send(b'{"taskId": "t", "type": "nope", "result": {}, "processedAt": 1}')

        assert await collector.run_once() == CycleOutcome.DROPPED

        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_duplicate_results_are_kept(
        self,
        collector: ResultCollector,
        result_channel: InMemoryChannel,
        store: InMemoryResultStore,
        serializer: JSONSerializer,
    ):
        """Test that redelivered results are not deduplicated."""
        body = serializer.encode_result(_result())
        await result_channel.send(body)
        await result_channel.send(body)

        await collector.run_once()
        await collector.run_once()

        assert len(await store.get("task-1")) == 2

    @pytest.mark.asyncio
    async def test_acknowledge_failure_after_append(
        self,
        result_channel: InMemoryChannel,
        store: InMemoryResultStore,
        serializer: JSONSerializer,
    ):
        """Test that a failed delete is reported and the result is still stored."""
        result_channel.delete = AsyncMock(side_effect=ChannelError("delete failed"))
        collector = ResultCollector(result_channel, store=store, wait_seconds=0, cycle_interval=0)
        await result_channel.send(serializer.encode_result(_result()))

        assert await collector.run_once() == CycleOutcome.FAILED

        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_on_collected_callback(self, result_channel: InMemoryChannel, serializer: JSONSerializer):
        """Test that the callback sees every stored result."""
        seen = MagicMock()
        collector = ResultCollector(result_channel, wait_seconds=0, cycle_interval=0, on_collected=seen)
        await result_channel.send(serializer.encode_result(_result()))

        await collector.run_once()

        seen.assert_called_once_with(_result())

    @pytest.mark.asyncio
    async def test_failing_callback_still_acknowledges(self, store: InMemoryResultStore, serializer: JSONSerializer):
        """Test that a raising callback neither blocks the ack nor duplicates the result."""
        channel = InMemoryChannel(name="results", visibility_timeout=0, poll_interval=0.01)
        callback = MagicMock(side_effect=RuntimeError("display failed"))
        collector = ResultCollector(channel, store=store, wait_seconds=0, cycle_interval=0, on_collected=callback)
        await channel.send(serializer.encode_result(_result()))

        outcomes = [await collector.run_once() for _ in range(3)]

        assert outcomes == [CycleOutcome.COMPLETED, CycleOutcome.IDLE, CycleOutcome.IDLE]
        callback.assert_called_once_with(_result())
        assert await store.count() == 1
        assert await channel.count() == 0

    def test_default_store(self, result_channel: InMemoryChannel):
        """Test that a collector creates its own store when none is given."""
        collector = ResultCollector(result_channel)

        assert isinstance(collector.store, InMemoryResultStore)


class TestInMemoryResultStore:
    """Tests for InMemoryResultStore."""

    @pytest.mark.asyncio
    async def test_snapshot_preserves_arrival_order(self, store: InMemoryResultStore):
        """Test that results are kept in append order."""
        first, second = _result("a"), _result("b")
        await store.append(first)
        await store.append(second)

        assert await store.snapshot() == (first, second)

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, store: InMemoryResultStore):
        """Test that later appends do not change an earlier snapshot."""
        await store.append(_result("a"))
        snapshot = await store.snapshot()

        await store.append(_result("b"))

        assert len(snapshot) == 1
        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_get_filters_by_task_id(self, store: InMemoryResultStore):
        """Test correlation by task id."""
        await store.append(_result("a", 1.0))
        await store.append(_result("b", 2.0))

        assert [r.outcome for r in await store.get("b")] == [AccruedInterest(interest=2.0)]
        assert await store.get("missing") == []

    @pytest.mark.asyncio
    async def test_wait_for_returns_late_result(self, store: InMemoryResultStore):
        """Test that wait_for picks up a result appended while waiting."""
        late = Result(task_id="late", type="convert_currency", outcome=ConvertedAmount(converted_amount=1.0))

        async def append_later():
            await asyncio.sleep(0.05)
            await store.append(late)

        appender = asyncio.create_task(append_later())
        found = await store.wait_for("late", timeout=2, poll_interval=0.01)
        await appender

        assert found == late

    @pytest.mark.asyncio
    async def test_wait_for_times_out_with_none(self, store: InMemoryResultStore):
        """Test that a missing result is reported as None, not an error."""
        assert await store.wait_for("never", timeout=0.05, poll_interval=0.01) is None
