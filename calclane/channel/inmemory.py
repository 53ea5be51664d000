import asyncio
import time
import uuid
from asyncio import Lock
from dataclasses import dataclass
from typing import Dict, List, Optional

from calclane.channel.base import Channel, QueueMessage
from calclane.exceptions import ChannelError


@dataclass
class _Entry:
    body: bytes
    visible_at: float = 0.0
    receipt_handle: Optional[str] = None
    receive_count: int = 0


def split_receipt_handle(receipt_handle: str) -> str:
    """Message id encoded in a receipt handle."""
    message_id, sep, _ = receipt_handle.partition(":")
    if not sep or not message_id:
        raise ChannelError(f"Malformed receipt handle '{receipt_handle}'")
    return message_id


class InMemoryChannel(Channel):
    def __init__(
        self,
        name: str = "memory",
        visibility_timeout: float = 30.0,
        poll_interval: float = 0.1,
    ):
        self._name = name
        self._messages: Dict[str, _Entry] = {}
        self.visibility_timeout = visibility_timeout
        self.poll_interval = poll_interval
        self.lock = Lock()
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelError(f"Channel '{self._name}' is closed")

    async def send(self, body: bytes) -> str:
        self._check_open()
        message_id = str(uuid.uuid4())
        async with self.lock:
            self._messages[message_id] = _Entry(body=bytes(body))
        return message_id

    async def _lease(self, max_messages: int) -> List[QueueMessage]:
        now = time.time()
        leased = []
        async with self.lock:
            for message_id, entry in self._messages.items():
                if entry.visible_at > now:
                    continue
                entry.visible_at = now + self.visibility_timeout
                entry.receipt_handle = f"{message_id}:{uuid.uuid4().hex}"
                entry.receive_count += 1
                leased.append(
                    QueueMessage(
                        message_id=message_id,
                        body=entry.body,
                        receipt_handle=entry.receipt_handle,
                        visibility_deadline=entry.visible_at,
                        receive_count=entry.receive_count,
                    )
                )
                if len(leased) >= max_messages:
                    break
        return leased

    async def receive(self, max_messages: int = 1, wait_seconds: float = 20) -> List[QueueMessage]:
        self._check_open()
        deadline = time.monotonic() + wait_seconds

        while True:
            messages = await self._lease(max_messages)
            if messages or time.monotonic() >= deadline:
                return messages
            await asyncio.sleep(self.poll_interval)

    async def delete(self, receipt_handle: str) -> None:
        self._check_open()
        message_id = split_receipt_handle(receipt_handle)
        async with self.lock:
            entry = self._messages.get(message_id)
            if entry is None or entry.receipt_handle != receipt_handle:
                raise ChannelError(f"Receipt handle '{receipt_handle}' is no longer valid")
            del self._messages[message_id]

    async def count(self) -> int:
        async with self.lock:
            return len(self._messages)

    async def close(self) -> None:
        self._closed = True


__all__ = ["InMemoryChannel"]
