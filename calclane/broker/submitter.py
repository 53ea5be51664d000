"""Task submitter."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from calclane.broker.base import Serializer
from calclane.broker.serializer import JSONSerializer, from_wire
from calclane.channel.base import Channel
from calclane.task import OpaquePayload, Task, TaskPayload, TaskType
from calclane.task.core import PAYLOAD_TYPES

_logger = logging.getLogger(__name__)


class Submitter:
    """Publishes tasks to the task channel.

    The submitter builds a Task with a fresh id, sends it, and keeps a local
    record of every task it submitted so results can be correlated later by
    task id. The record is written only here.

    Example:
        from calclane.channel import InMemoryChannel
        from calclane.broker import Submitter

        task_channel = InMemoryChannel(name="tasks")
        submitter = Submitter(task_channel=task_channel)

        task_id = await submitter.submit(
            "convert_currency",
            {"amount": 100, "fromCurrency": "USD", "toCurrency": "EUR"},
        )
    """

    def __init__(
        self,
        task_channel: Channel,
        serializer: Optional[Serializer] = None,
    ):
        """Initialize the submitter.

        Args:
            task_channel: The channel tasks are published to.
            serializer: Optional serializer (default: JSONSerializer).
        """
        self._channel = task_channel
        self._serializer = serializer or JSONSerializer()
        self._tasks: Dict[str, Task] = {}

    @property
    def channel(self) -> Channel:
        """The task channel."""
        return self._channel

    @property
    def serializer(self) -> Serializer:
        """The serializer used for task serialization."""
        return self._serializer

    # noinspection PyMethodMayBeStatic
    def _create_task(
        self,
        task_type: str,
        payload: Union[TaskPayload, Mapping[str, Any]],
    ) -> Task:
        """Create a Task from a type tag and payload.

        Args:
            task_type: Type tag. Unknown tags are accepted and carried opaquely.
            payload: A payload dataclass, or a mapping keyed by wire field names.

        Returns:
            A new Task object.

        Raises:
            InvalidPayloadError: If the payload does not fit a known type.
        """
        if isinstance(payload, Mapping):
            known = TaskType.parse(task_type)
            if known is None:
                payload = OpaquePayload(fields=dict(payload))
            else:
                payload = from_wire(PAYLOAD_TYPES[known], dict(payload))

        return Task.create(task_type, payload)

    async def submit(
        self,
        task_type: str,
        payload: Union[TaskPayload, Mapping[str, Any]],
    ) -> str:
        """Send a task to the task channel.

        There is no retry here; on failure nothing is recorded and the caller
        decides whether to submit again.

        Args:
            task_type: Type tag, e.g. "convert_currency".
            payload: A payload dataclass, or a mapping keyed by wire field names.

        Returns:
            The id of the submitted task.

        Raises:
            InvalidPayloadError: If the payload does not fit a known type.
            ChannelError: If the task could not be published.
        """
        task = self._create_task(task_type, payload)
        await self._channel.send(self._serializer.encode_task(task))
        self._tasks[task.task_id] = task
        _logger.info(f"Submitted task {task.task_id} ({task.type})")
        return task.task_id

    def get(self, task_id: str) -> Optional[Task]:
        """A task submitted by this submitter, if any."""
        return self._tasks.get(task_id)

    def tasks(self) -> List[Task]:
        """Snapshot of all submitted tasks, oldest first."""
        return sorted(self._tasks.values(), key=lambda t: t.created_at)


__all__ = ["Submitter"]
