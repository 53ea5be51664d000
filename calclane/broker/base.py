"""Abstract base classes for broker components."""

from abc import ABC, abstractmethod

from calclane.task import Result, Task


class Serializer(ABC):
    """Abstract base class for task and result serialization.

    Serializers define the wire schema: they turn Task and Result objects
    into message bodies for a Channel and back.

    To implement a custom serializer:
        1. Subclass Serializer
        2. Implement the encode and decode methods
        3. Raise MalformedMessageError or UnknownTaskTypeError on bad input

    Example:
        class MsgPackSerializer(Serializer):
            def encode_task(self, task: Task) -> bytes:
                return msgpack.packb(task_to_dict(task))

            def decode_task(self, data: bytes) -> Task:
                return dict_to_task(msgpack.unpackb(data))
    """

    @abstractmethod
    def encode_task(self, task: Task) -> bytes:
        """Serialize a Task to a message body.

        Args:
            task: The Task object to serialize.

        Returns:
            Bytes carrying task id, type, payload and creation time.
        """
        ...

    @abstractmethod
    def decode_task(self, data: bytes) -> Task:
        """Deserialize a message body back to a Task.

        Args:
            data: Bytes to deserialize.

        Returns:
            Reconstructed Task object.

        Raises:
            MalformedMessageError: If the body is not a well-formed task.
            UnknownTaskTypeError: If the type matches no known variant.
        """
        ...

    @abstractmethod
    def encode_result(self, result: Result) -> bytes:
        """Serialize a Result to a message body.

        Args:
            result: The Result object to serialize.

        Returns:
            Bytes carrying task id, type, outcome and processing time.
        """
        ...

    @abstractmethod
    def decode_result(self, data: bytes) -> Result:
        """Deserialize a message body back to a Result.

        Args:
            data: Bytes to deserialize.

        Returns:
            Reconstructed Result object.

        Raises:
            MalformedMessageError: If the body is not a well-formed result.
            UnknownTaskTypeError: If the type matches no known variant.
        """
        ...


__all__ = [
    "Serializer",
]
