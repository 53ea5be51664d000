import logging
from typing import Optional

from calclane.broker.base import Serializer
from calclane.channel.base import Channel, QueueMessage
from calclane.exceptions import (
    ChannelError,
    MalformedMessageError,
    UnhandledTaskTypeError,
    UnknownTaskTypeError,
)
from calclane.loop import CycleOutcome, PollingLoop
from calclane.task import HandlerRegistry, Result, default_registry, utc_now

_logger = logging.getLogger(__name__)


class TaskWorker(PollingLoop):
    """Turns tasks from the task channel into results on the result channel.

    A task message is acknowledged only after its result is published, or
    after it is deliberately dropped because it can never be processed
    (malformed body, unknown or unhandled type). Handler and publish failures
    leave it unacknowledged, so the channel redelivers it after the visibility
    timeout.
    """

    label = "WORKER"

    def __init__(
        self,
        task_channel: Channel,
        result_channel: Channel,
        handlers: Optional[HandlerRegistry] = None,
        serializer: Optional[Serializer] = None,
        wait_seconds: float = 20,
        cycle_interval: float = 1.0,
    ):
        super().__init__(
            channel=task_channel,
            serializer=serializer,
            wait_seconds=wait_seconds,
            cycle_interval=cycle_interval,
        )
        self._result_channel = result_channel
        self._handlers = handlers if handlers is not None else default_registry()

    @property
    def result_channel(self) -> Channel:
        return self._result_channel

    @property
    def handlers(self) -> HandlerRegistry:
        return self._handlers

    async def _process(self, message: QueueMessage) -> CycleOutcome:
        try:
            task = self._serializer.decode_task(message.body)
        except UnknownTaskTypeError as error:
            _logger.warning(f"[WORKER] Dropping task {error.task_id}: {error}")
            return await self._acknowledge(message, CycleOutcome.DROPPED)
        except MalformedMessageError as error:
            _logger.warning(f"[WORKER] Dropping malformed message {message.message_id}: {error}")
            return await self._acknowledge(message, CycleOutcome.DROPPED)

        try:
            handler = self._handlers.get(task.type)
        except UnhandledTaskTypeError as error:
            _logger.warning(f"[WORKER] Dropping task {task.task_id}: {error}")
            return await self._acknowledge(message, CycleOutcome.DROPPED)

        try:
            outcome = handler(task.payload)
        except Exception as error:  # noqa
            _logger.exception(f"[WORKER] Handler for task {task.task_id} failed, leaving it for redelivery: {error}")
            return CycleOutcome.RETRY

        result = Result(task_id=task.task_id, type=task.type, outcome=outcome, processed_at=utc_now())
        try:
            await self._result_channel.send(self._serializer.encode_result(result))
        except ChannelError as error:
            _logger.error(f"[WORKER] Publishing result of task {task.task_id} failed, leaving it for redelivery: {error}")
            return CycleOutcome.RETRY

        _logger.info(f"[WORKER] {result}")
        return await self._acknowledge(message, CycleOutcome.COMPLETED)


__all__ = ["TaskWorker"]
