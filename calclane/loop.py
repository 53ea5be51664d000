"""Polling loop shared by the worker and the collector."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter
from enum import StrEnum  # type: ignore
from typing import List, Optional

from calclane.broker.base import Serializer
from calclane.broker.serializer import JSONSerializer
from calclane.channel.base import Channel, QueueMessage
from calclane.exceptions import ChannelError

_logger = logging.getLogger(__name__)


class CycleOutcome(StrEnum):
    IDLE = "idle"
    COMPLETED = "completed"
    DROPPED = "dropped"
    RETRY = "retry"
    FAILED = "failed"


class PollingLoop(ABC):
    """Drains one channel, one message per cycle.

    Each cycle runs to completion before the next begins:
    receive, then process, then acknowledge. The long-poll receive is the only
    place the loop waits for the channel. A stop request cuts that wait short
    but never interrupts a cycle that already holds a message, so a message is
    either fully handled or left for redelivery.

    Errors never leave the loop: they are logged, the cycle ends early, and
    the next cycle starts after the same fixed interval as any other.

    Subclasses implement _process() for a single leased message.

    Example:
        worker = TaskWorker(task_channel=tasks, result_channel=results)

        await worker.start()
        await asyncio.sleep(60)  # Run for 60 seconds
        await worker.stop()
    """

    label = "LOOP"

    def __init__(
        self,
        channel: Channel,
        serializer: Optional[Serializer] = None,
        wait_seconds: float = 20,
        cycle_interval: float = 1.0,
    ):
        """Initialize the loop.

        Args:
            channel: The channel this loop consumes.
            serializer: Optional serializer (default: JSONSerializer).
            wait_seconds: Long-poll duration of each receive.
            cycle_interval: Fixed pause after every cycle, in seconds.
        """
        self._channel = channel
        self._serializer = serializer or JSONSerializer()
        self._wait_seconds = wait_seconds
        self._cycle_interval = cycle_interval
        self._running = False
        self._shutdown = asyncio.Event()
        self._main_task: Optional[asyncio.Task] = None
        self.outcomes: Counter = Counter()

    @property
    def channel(self) -> Channel:
        """The channel this loop consumes."""
        return self._channel

    @property
    def serializer(self) -> Serializer:
        """The serializer used to decode messages."""
        return self._serializer

    @property
    def running(self) -> bool:
        """Whether the loop is currently running."""
        return self._running

    @abstractmethod
    async def _process(self, message: QueueMessage) -> CycleOutcome:
        """Handle one leased message, acknowledging it when appropriate."""
        ...

    async def _receive(self) -> List[QueueMessage]:
        """Long-poll for one message, giving up early if a stop is requested."""
        receive_task = asyncio.create_task(
            self._channel.receive(max_messages=1, wait_seconds=self._wait_seconds)
        )
        stop_task = asyncio.create_task(self._shutdown.wait())
        try:
            await asyncio.wait({receive_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            received = receive_task.done()
            if not received:
                receive_task.cancel()

        if not received:
            return []
        return receive_task.result()

    async def _acknowledge(self, message: QueueMessage, outcome: CycleOutcome) -> CycleOutcome:
        """Delete the message from the channel; it can no longer be redelivered."""
        try:
            await self._channel.delete(message.receipt_handle)
        except ChannelError as error:
            _logger.error(
                f"[{self.label}] Acknowledging message {message.message_id} failed, "
                f"it may be redelivered: {error}"
            )
            return CycleOutcome.FAILED
        return outcome

    async def run_once(self) -> CycleOutcome:
        """Run a single receive/process/acknowledge cycle."""
        try:
            messages = await self._receive()
        except ChannelError as error:
            _logger.error(f"[{self.label}] Receive from '{self._channel.name}' failed: {error}")
            return CycleOutcome.FAILED

        if not messages:
            return CycleOutcome.IDLE
        return await self._process(messages[0])

    async def _pause(self) -> None:
        if self._cycle_interval <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=self._cycle_interval)
        except asyncio.TimeoutError:
            pass

    async def _run_loop(self) -> None:
        """Main loop."""
        while not self._shutdown.is_set():
            try:
                outcome = await self.run_once()
            except Exception as error:  # noqa
                _logger.exception(f"[{self.label}] Unexpected error in cycle: {error}")
                outcome = CycleOutcome.FAILED

            self.outcomes[outcome] += 1
            if outcome != CycleOutcome.IDLE:
                _logger.debug(f"[{self.label}] Cycle finished: {outcome}")

            await self._pause()

    async def start(self) -> None:
        """Start the loop.

        Call stop() to shut it down between cycles.
        """
        if self._running:
            raise RuntimeError(f"{type(self).__name__} is already running")

        self._running = True
        self._shutdown.clear()
        self._main_task = asyncio.create_task(self._run_loop())
        _logger.info(f"[{self.label}] Started on channel '{self._channel.name}'")

    async def stop(self, wait: bool = True) -> None:
        """Stop the loop.

        Args:
            wait: If True, let the current cycle finish.
                  If False, cancel it; an unacknowledged message is redelivered.
        """
        self._running = False
        self._shutdown.set()

        if wait and self._main_task:
            await self._main_task
        elif self._main_task:
            self._main_task.cancel()
            try:
                await self._main_task
            except asyncio.CancelledError:
                pass

        _logger.info(f"[{self.label}] Stopped")

    async def wait(self) -> None:
        """Wait for the loop to finish.

        Blocks until the loop is stopped.
        """
        if self._main_task:
            await self._main_task


__all__ = ["CycleOutcome", "PollingLoop"]
