import asyncio
import json
import time
import uuid
from asyncio import Lock
from typing import List

import lmdb

from calclane.channel.base import Channel, QueueMessage
from calclane.channel.inmemory import split_receipt_handle
from calclane.exceptions import ChannelError


class LMDBChannel(Channel):
    """Durable channel stored in an LMDB environment.

    Keeps two databases:
    - bodies: message id -> raw message body
    - leases: message id -> visibility deadline, current receipt handle, receive count

    The environment is opened with locking enabled so a submitter, a worker and
    a collector running as separate processes can share one channel directory.
    Each channel needs its own directory.
    """

    def __init__(
        self,
        path: str,
        name: str = "",
        visibility_timeout: float = 30.0,
        poll_interval: float = 0.1,
        map_size: int = 10 * 1024 * 1024,
    ):
        try:
            self.env = lmdb.open(
                path,
                map_size=map_size,
                subdir=True,
                max_dbs=2,
                readonly=False,
                create=True,
                lock=True,
            )
            self._db_bodies = self.env.open_db(b"bodies")
            self._db_leases = self.env.open_db(b"leases")
        except lmdb.Error as error:
            raise ChannelError(f"Could not open channel at '{path}': {error}") from error
        self._name = name or path
        self.visibility_timeout = visibility_timeout
        self.poll_interval = poll_interval
        self.lock = Lock()
        self._closed = False
        self._last_ns = 0

    @property
    def name(self) -> str:
        return self._name

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelError(f"Channel '{self._name}' is closed")

    async def send(self, body: bytes) -> str:
        self._check_open()
        # Time-prefixed ids keep the cursor roughly in send order.
        self._last_ns = max(time.time_ns(), self._last_ns + 1)
        message_id = f"{self._last_ns:020d}-{uuid.uuid4().hex}"
        key = message_id.encode("utf-8")
        lease = {"visible_at": 0.0, "receipt_handle": None, "receive_count": 0}
        try:
            async with self.lock:
                with self.env.begin(write=True) as txn:
                    txn.put(key, bytes(body), db=self._db_bodies)
                    txn.put(key, json.dumps(lease).encode("utf-8"), db=self._db_leases)
        except lmdb.Error as error:
            raise ChannelError(f"Send to '{self._name}' failed: {error}") from error
        return message_id

    async def _lease(self, max_messages: int) -> List[QueueMessage]:
        now = time.time()
        leased = []
        async with self.lock:
            with self.env.begin(write=True) as txn:
                visible = []
                for key, raw in txn.cursor(db=self._db_leases):
                    lease = json.loads(raw.decode("utf-8"))
                    if lease["visible_at"] <= now:
                        visible.append((bytes(key), lease))
                        if len(visible) >= max_messages:
                            break

                for key, lease in visible:
                    body = txn.get(key, db=self._db_bodies)
                    if body is None:
                        continue

                    message_id = key.decode("utf-8")
                    lease["visible_at"] = now + self.visibility_timeout
                    lease["receipt_handle"] = f"{message_id}:{uuid.uuid4().hex}"
                    lease["receive_count"] += 1
                    txn.put(key, json.dumps(lease).encode("utf-8"), db=self._db_leases)

                    leased.append(
                        QueueMessage(
                            message_id=message_id,
                            body=bytes(body),
                            receipt_handle=lease["receipt_handle"],
                            visibility_deadline=lease["visible_at"],
                            receive_count=lease["receive_count"],
                        )
                    )
        return leased

    async def receive(self, max_messages: int = 1, wait_seconds: float = 20) -> List[QueueMessage]:
        self._check_open()
        deadline = time.monotonic() + wait_seconds

        while True:
            try:
                messages = await self._lease(max_messages)
            except lmdb.Error as error:
                raise ChannelError(f"Receive from '{self._name}' failed: {error}") from error
            if messages or time.monotonic() >= deadline:
                return messages
            await asyncio.sleep(self.poll_interval)

    async def delete(self, receipt_handle: str) -> None:
        self._check_open()
        key = split_receipt_handle(receipt_handle).encode("utf-8")
        try:
            async with self.lock:
                with self.env.begin(write=True) as txn:
                    raw = txn.get(key, db=self._db_leases)
                    lease = json.loads(raw.decode("utf-8")) if raw else None
                    if lease is None or lease["receipt_handle"] != receipt_handle:
                        raise ChannelError(f"Receipt handle '{receipt_handle}' is no longer valid")
                    txn.delete(key, db=self._db_leases)
                    txn.delete(key, db=self._db_bodies)
        except lmdb.Error as error:
            raise ChannelError(f"Delete from '{self._name}' failed: {error}") from error

    async def count(self) -> int:
        with self.env.begin(db=self._db_bodies) as txn:
            return txn.stat(self._db_bodies)["entries"]

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.env.close()


__all__ = ["LMDBChannel"]
