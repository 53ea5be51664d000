"""Task and result serializer implementations."""

import json
import math
from dataclasses import fields
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Type, TypeVar

from calclane.broker.base import Serializer
from calclane.exceptions import InvalidPayloadError, MalformedMessageError, UnknownTaskTypeError
from calclane.task import OpaquePayload, Result, Task, TaskType
from calclane.task.core import OUTCOME_TYPES, PAYLOAD_TYPES

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

T = TypeVar("T")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))


def _reject_constant(name: str) -> Any:
    raise MalformedMessageError(f"Message body contains non-finite number {name}")


def to_wire(obj: Any) -> Dict[str, Any]:
    """Dataclass to a dict keyed by the wire names in its field metadata."""
    if isinstance(obj, OpaquePayload):
        return dict(obj.fields)
    return {f.metadata["wire"]: getattr(obj, f.name) for f in fields(obj)}


def from_wire(cls: Type[T], data: Any) -> T:
    """Build a payload or outcome dataclass from its wire dict.

    Raises:
        InvalidPayloadError: If a field is missing or of the wrong kind.
    """
    if not isinstance(data, dict):
        raise InvalidPayloadError(f"{cls.__name__} payload must be an object")

    values = {}
    for f in fields(cls):
        wire_name = f.metadata["wire"]
        if wire_name not in data:
            raise InvalidPayloadError(f"{cls.__name__} is missing field '{wire_name}'")
        value = data[wire_name]
        if f.type is float and not _is_number(value):
            raise InvalidPayloadError(f"{cls.__name__}.{wire_name} must be a number, got {value!r}")
        if f.type is str and not (isinstance(value, str) and value.strip()):
            raise InvalidPayloadError(f"{cls.__name__}.{wire_name} must be a non-empty string")
        values[f.name] = value
    return cls(**values)


def to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_millis(millis: int) -> datetime:
    return EPOCH + timedelta(milliseconds=millis)


class JSONSerializer(Serializer):
    """JSON-based task and result serializer.

    Task body:   {"taskId", "type", "payload", "timestamp"}
    Result body: {"taskId", "type", "result", "processedAt"}

    Timestamps are integer epoch milliseconds. Payload and outcome fields use
    camelCase names on the wire.
    """

    def __init__(self, encoding: str = "utf-8"):
        """Initialize the JSON serializer.

        Args:
            encoding: Character encoding for JSON bytes.
        """
        self.encoding = encoding

    def _dump(self, data: Dict[str, Any]) -> bytes:
        return json.dumps(data).encode(self.encoding)

    def _load(self, data: bytes) -> Dict[str, Any]:
        try:
            raw = json.loads(bytes(data).decode(self.encoding), parse_constant=_reject_constant)
        except (UnicodeDecodeError, ValueError, TypeError) as error:
            raise MalformedMessageError(f"Message body is not valid JSON: {error}") from error
        if not isinstance(raw, dict):
            raise MalformedMessageError("Message body must be a JSON object")
        return raw

    # noinspection PyMethodMayBeStatic
    def _envelope(self, raw: Dict[str, Any], time_key: str) -> datetime:
        task_id = raw.get("taskId")
        if not isinstance(task_id, str) or not task_id:
            raise MalformedMessageError("Message is missing 'taskId'")
        if not isinstance(raw.get("type"), str):
            raise MalformedMessageError(f"Message {task_id} is missing 'type'")
        timestamp = raw.get(time_key)
        if not _is_number(timestamp):
            raise MalformedMessageError(f"Message {task_id} is missing '{time_key}'")
        try:
            return from_millis(timestamp)
        except (OverflowError, ValueError) as error:
            raise MalformedMessageError(f"Message {task_id} has an invalid '{time_key}'") from error

    def encode_task(self, task: Task) -> bytes:
        return self._dump(
            {
                "taskId": task.task_id,
                "type": task.type,
                "payload": to_wire(task.payload),
                "timestamp": to_millis(task.created_at),
            }
        )

    def decode_task(self, data: bytes) -> Task:
        raw = self._load(data)
        created_at = self._envelope(raw, "timestamp")
        task_id, tag, payload = raw["taskId"], raw["type"], raw.get("payload")

        task_type = TaskType.parse(tag)
        if task_type is None:
            opaque = payload if isinstance(payload, dict) else {}
            raise UnknownTaskTypeError(tag, task_id=task_id, payload=opaque)

        try:
            return Task(
                task_id=task_id,
                type=tag,
                payload=from_wire(PAYLOAD_TYPES[task_type], payload),
                created_at=created_at,
            )
        except InvalidPayloadError as error:
            raise MalformedMessageError(f"Task {task_id}: {error}") from error

    def encode_result(self, result: Result) -> bytes:
        return self._dump(
            {
                "taskId": result.task_id,
                "type": result.type,
                "result": to_wire(result.outcome),
                "processedAt": to_millis(result.processed_at),
            }
        )

    def decode_result(self, data: bytes) -> Result:
        raw = self._load(data)
        processed_at = self._envelope(raw, "processedAt")
        task_id, tag, outcome = raw["taskId"], raw["type"], raw.get("result")

        task_type = TaskType.parse(tag)
        if task_type is None:
            opaque = outcome if isinstance(outcome, dict) else {}
            raise UnknownTaskTypeError(tag, task_id=task_id, payload=opaque)

        try:
            return Result(
                task_id=task_id,
                type=tag,
                outcome=from_wire(OUTCOME_TYPES[task_type], outcome),
                processed_at=processed_at,
            )
        except InvalidPayloadError as error:
            raise MalformedMessageError(f"Result {task_id}: {error}") from error


__all__ = [
    "JSONSerializer",
    "to_wire",
    "from_wire",
    "to_millis",
    "from_millis",
]
