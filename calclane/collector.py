import logging
from typing import Callable, Optional

from calclane.broker.base import Serializer
from calclane.channel.base import Channel, QueueMessage
from calclane.exceptions import DecodeError
from calclane.loop import CycleOutcome, PollingLoop
from calclane.result.base import ResultStore
from calclane.result.inmemory import InMemoryResultStore
from calclane.task import Result

_logger = logging.getLogger(__name__)


class ResultCollector(PollingLoop):
    """Moves results from the result channel into the result store.

    Undecodable result messages are acknowledged and dropped so they cannot
    block the channel. The store is appended to before the message is
    acknowledged; if the acknowledgment fails the result arrives again and is
    stored twice.
    """

    label = "COLLECTOR"

    def __init__(
        self,
        result_channel: Channel,
        store: Optional[ResultStore] = None,
        serializer: Optional[Serializer] = None,
        wait_seconds: float = 20,
        cycle_interval: float = 1.0,
        on_collected: Optional[Callable[[Result], None]] = None,
    ):
        super().__init__(
            channel=result_channel,
            serializer=serializer,
            wait_seconds=wait_seconds,
            cycle_interval=cycle_interval,
        )
        self._store = store if store is not None else InMemoryResultStore()
        self._on_collected = on_collected

    @property
    def store(self) -> ResultStore:
        return self._store

    async def _process(self, message: QueueMessage) -> CycleOutcome:
        try:
            result = self._serializer.decode_result(message.body)
        except DecodeError as error:
            _logger.warning(f"[COLLECTOR] Dropping result message {message.message_id}: {error}")
            return await self._acknowledge(message, CycleOutcome.DROPPED)

        await self._store.append(result)
        _logger.info(f"[COLLECTOR] {result}")
        if self._on_collected:
            try:
                self._on_collected(result)
            except Exception as error:  # noqa
                _logger.exception(f"[COLLECTOR] Callback for result {result.task_id} failed: {error}")

        return await self._acknowledge(message, CycleOutcome.COMPLETED)


__all__ = ["ResultCollector"]
