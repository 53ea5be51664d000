"""Tests for the worker loop."""

import json
from unittest.mock import AsyncMock

import pytest

from calclane.broker import JSONSerializer, Submitter
from calclane.channel import InMemoryChannel
from calclane.exceptions import ChannelError
from calclane.loop import CycleOutcome
from calclane.task import ConvertCurrency, HandlerRegistry, TaskType
from calclane.task.handlers import calculate_interest
from calclane.worker import TaskWorker


class TestTaskWorker:
    """Tests for TaskWorker.run_once."""

    @pytest.mark.asyncio
    async def test_idle_when_channel_empty(self, worker: TaskWorker):
        """Test that an empty task channel yields an idle cycle."""
        assert await worker.run_once() == CycleOutcome.IDLE

    @pytest.mark.asyncio
    async def test_convert_currency_publishes_result(
        self,
        worker: TaskWorker,
        submitter: Submitter,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test that a supported task becomes a result and is acknowledged."""
        task_id = await submitter.submit(
            "convert_currency", {"amount": 100, "fromCurrency": "USD", "toCurrency": "EUR"}
        )

        assert await worker.run_once() == CycleOutcome.COMPLETED

        assert await task_channel.count() == 0
        [message] = await result_channel.receive(max_messages=1, wait_seconds=0)
        body = json.loads(message.body)
        assert body["taskId"] == task_id
        assert body["type"] == "convert_currency"
        assert body["result"]["convertedAmount"] == pytest.approx(110)
        assert isinstance(body["processedAt"], int)

    @pytest.mark.asyncio
    async def test_result_echoes_task_type_as_given(
        self,
        worker: TaskWorker,
        submitter: Submitter,
        result_channel: InMemoryChannel,
    ):
        """Test that mixed-case tags are dispatched and echoed unchanged."""
        await submitter.submit("Calculate_Interest", {"principal": 1000, "annualRate": 5, "days": 365})

        assert await worker.run_once() == CycleOutcome.COMPLETED

        [message] = await result_channel.receive(max_messages=1, wait_seconds=0)
        body = json.loads(message.body)
        assert body["type"] == "Calculate_Interest"
        assert body["result"] == {"interest": 50.0}

    @pytest.mark.asyncio
    async def test_unknown_type_is_acknowledged_without_result(
        self,
        worker: TaskWorker,
        submitter: Submitter,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test that an unsupported type is dropped silently."""
        await submitter.submit("unknown_op", {"x": 1})

        assert await worker.run_once() == CycleOutcome.DROPPED

        assert await task_channel.count() == 0
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_malformed_message_is_acknowledged(
        self,
        worker: TaskWorker,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test the poison-message drain for undecodable bodies."""
        await task_channel.send(b"{not json")

        assert await worker.run_once() == CycleOutcome.DROPPED

        assert await task_channel.count() == 0
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_non_finite_timestamp_is_acknowledged(
        self,
        worker: TaskWorker,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test that a NaN timestamp is drained instead of redelivered forever."""
        await task_channel.send(
            b'{"taskId": "t-1", "type": "convert_currency", '
            b'"payload": {"amount": 1, "fromCurrency": "USD", "toCurrency": "EUR"}, "timestamp": NaN}'
        )

        assert await worker.run_once() == CycleOutcome.DROPPED

        assert await task_channel.count() == 0
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_unhandled_known_type_is_dropped(
        self,
        submitter: Submitter,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test that a known type without a handler is dropped."""
        registry = HandlerRegistry()
        registry.register(TaskType.CALCULATE_INTEREST, calculate_interest)
        worker = TaskWorker(task_channel, result_channel, handlers=registry, wait_seconds=0, cycle_interval=0)
        await submitter.submit(
            "convert_currency", ConvertCurrency(amount=1, from_currency="USD", to_currency="EUR")
        )

        assert await worker.run_once() == CycleOutcome.DROPPED

        assert await task_channel.count() == 0
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_publish_failure_leaves_task_for_redelivery(
        self,
        submitter: Submitter,
        task_channel: InMemoryChannel,
    ):
        """Test that a failed publish does not acknowledge the task."""
        failing = AsyncMock(spec=InMemoryChannel)
        failing.send.side_effect = ChannelError("result queue unavailable")
        worker = TaskWorker(task_channel, failing, wait_seconds=0, cycle_interval=0)
        await submitter.submit("calculate_interest", {"principal": 1000, "annualRate": 5, "days": 365})

        assert await worker.run_once() == CycleOutcome.RETRY

        failing.send.assert_awaited_once()
        assert await task_channel.count() == 1

    @pytest.mark.asyncio
    async def test_redelivered_task_is_processed_after_publish_failure(self, submitter: Submitter):
        """Test at-least-once retry once the result channel recovers."""
        task_channel = submitter.channel
        task_channel.visibility_timeout = 0
        result_channel = InMemoryChannel(name="results", poll_interval=0.01)
        original_send = result_channel.send
        result_channel.send = AsyncMock(side_effect=ChannelError("flaky"))
        worker = TaskWorker(task_channel, result_channel, wait_seconds=0, cycle_interval=0)
        await submitter.submit("calculate_interest", {"principal": 100, "annualRate": 10, "days": 365})

        assert await worker.run_once() == CycleOutcome.RETRY
        result_channel.send = original_send
        assert await worker.run_once() == CycleOutcome.COMPLETED

        assert await task_channel.count() == 0
        assert await result_channel.count() == 1

    @pytest.mark.asyncio
    async def test_handler_failure_leaves_task_for_redelivery(
        self,
        submitter: Submitter,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test that a crashing handler does not acknowledge the task."""
        registry = HandlerRegistry()
        registry.register(TaskType.CONVERT_CURRENCY, lambda payload: 1 / 0)
        worker = TaskWorker(task_channel, result_channel, handlers=registry, wait_seconds=0, cycle_interval=0)
        await submitter.submit("convert_currency", {"amount": 1, "fromCurrency": "USD", "toCurrency": "EUR"})

        assert await worker.run_once() == CycleOutcome.RETRY

        assert await task_channel.count() == 1
        assert await result_channel.count() == 0

    @pytest.mark.asyncio
    async def test_receive_failure_is_contained(self, result_channel: InMemoryChannel):
        """Test that a receive error ends the cycle without raising."""
        failing = AsyncMock(spec=InMemoryChannel)
        failing.name = "tasks"
        failing.receive.side_effect = ChannelError("network down")
        worker = TaskWorker(failing, result_channel, wait_seconds=0, cycle_interval=0)

        assert await worker.run_once() == CycleOutcome.FAILED

    @pytest.mark.asyncio
    async def test_acknowledge_failure_is_contained(
        self,
        submitter: Submitter,
        task_channel: InMemoryChannel,
        result_channel: InMemoryChannel,
    ):
        """Test that a failed delete after publishing is reported, not raised."""
        task_channel.delete = AsyncMock(side_effect=ChannelError("delete failed"))
        worker = TaskWorker(task_channel, result_channel, wait_seconds=0, cycle_interval=0)
        await submitter.submit("calculate_interest", {"principal": 1, "annualRate": 1, "days": 1})

        assert await worker.run_once() == CycleOutcome.FAILED

        assert await result_channel.count() == 1
        assert await task_channel.count() == 1

    @pytest.mark.asyncio
    async def test_side_effects_per_cycle(self, submitter: Submitter, result_channel: InMemoryChannel):
        """Test one receive, one send and one delete for a processed task."""
        task_channel = submitter.channel
        spy_tasks = AsyncMock(wraps=task_channel)
        spy_results = AsyncMock(wraps=result_channel)
        worker = TaskWorker(spy_tasks, spy_results, serializer=JSONSerializer(), wait_seconds=0, cycle_interval=0)
        await submitter.submit("calculate_interest", {"principal": 1, "annualRate": 1, "days": 1})

        await worker.run_once()

        assert spy_tasks.receive.await_count == 1
        assert spy_results.send.await_count == 1
        assert spy_tasks.delete.await_count == 1
