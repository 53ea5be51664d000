"""Abstract base class for message channels."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class QueueMessage:
    """A message leased from a channel.

    The receipt handle is valid only until the visibility deadline; after that
    the message may be delivered again with a new handle and the old one stops
    working.
    """

    message_id: str
    body: bytes
    receipt_handle: str
    visibility_deadline: float
    receive_count: int = 1


class Channel(ABC):
    """Abstract base class for a durable, at-least-once message channel.

    Channels carry opaque bytes between the submitter, the worker and the
    collector. They make no ordering promise. A received message stays
    invisible to other receivers for the visibility timeout and is delivered
    again unless it is deleted with its receipt handle before then.

    Every failure is raised as ChannelError so the loops can treat transport
    problems uniformly.

    To implement a custom channel:
        1. Subclass Channel
        2. Implement all abstract methods
        3. Raise ChannelError for any transport failure

    Example:
        class SQSChannel(Channel):
            def __init__(self, client, queue_url: str):
                self.client = client
                self.queue_url = queue_url

            async def send(self, body: bytes) -> str:
                response = await self.client.send_message(
                    QueueUrl=self.queue_url, MessageBody=body.decode()
                )
                return response["MessageId"]
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier of the queue this channel talks to."""
        ...

    @abstractmethod
    async def send(self, body: bytes) -> str:
        """Publish a message body.

        Args:
            body: Serialized task or result.

        Returns:
            The id assigned to the message.

        Raises:
            ChannelError: If the message could not be published.
        """
        ...

    @abstractmethod
    async def receive(
        self,
        max_messages: int = 1,
        wait_seconds: float = 20,
    ) -> List[QueueMessage]:
        """Lease up to max_messages visible messages.

        Args:
            max_messages: Maximum number of messages to return.
            wait_seconds: Long-poll duration. 0 means return immediately.

        Returns:
            Leased messages, empty if none became visible before the wait ended.

        Raises:
            ChannelError: If the channel could not be read.
        """
        ...

    @abstractmethod
    async def delete(self, receipt_handle: str) -> None:
        """Acknowledge a leased message, removing it permanently.

        Args:
            receipt_handle: Handle from the QueueMessage being acknowledged.

        Raises:
            ChannelError: If the handle is stale or unknown, or the delete failed.
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of messages in the channel, visible or leased."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the channel and release resources."""
        ...


__all__ = [
    "QueueMessage",
    "Channel",
]
