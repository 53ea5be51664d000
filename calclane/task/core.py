import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum  # type: ignore
from typing import Any, Dict, Optional, Union

from calclane.exceptions import InvalidPayloadError


def to_wire_precision(moment: datetime) -> datetime:
    """Aware UTC datetime truncated to milliseconds; naive values are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.replace(microsecond=moment.microsecond // 1000 * 1000)


def utc_now() -> datetime:
    """Current UTC time at the millisecond precision of the wire format"""
    return to_wire_precision(datetime.now(timezone.utc))


class TaskType(StrEnum):
    CONVERT_CURRENCY = "convert_currency"
    CALCULATE_INTEREST = "calculate_interest"

    @classmethod
    def parse(cls, tag: str) -> Optional["TaskType"]:
        """Case-insensitive lookup; None for tags outside the known set."""
        if not isinstance(tag, str):
            return None
        try:
            return cls(tag.lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ConvertCurrency:
    amount: float = field(metadata={"wire": "amount"})
    from_currency: str = field(metadata={"wire": "fromCurrency"})
    to_currency: str = field(metadata={"wire": "toCurrency"})


@dataclass(frozen=True)
class CalculateInterest:
    principal: float = field(metadata={"wire": "principal"})
    annual_rate: float = field(metadata={"wire": "annualRate"})
    days: float = field(metadata={"wire": "days"})


@dataclass(frozen=True)
class OpaquePayload:
    """Payload of a task whose type is not known to this system."""

    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConvertedAmount:
    converted_amount: float = field(metadata={"wire": "convertedAmount"})


@dataclass(frozen=True)
class AccruedInterest:
    interest: float = field(metadata={"wire": "interest"})


TaskPayload = Union[ConvertCurrency, CalculateInterest, OpaquePayload]
Outcome = Union[ConvertedAmount, AccruedInterest]

PAYLOAD_TYPES = {
    TaskType.CONVERT_CURRENCY: ConvertCurrency,
    TaskType.CALCULATE_INTEREST: CalculateInterest,
}

OUTCOME_TYPES = {
    TaskType.CONVERT_CURRENCY: ConvertedAmount,
    TaskType.CALCULATE_INTEREST: AccruedInterest,
}


@dataclass(frozen=True)
class Task:
    task_id: str
    type: str
    payload: TaskPayload
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        object.__setattr__(self, "created_at", to_wire_precision(self.created_at))
        task_type = self.task_type
        expected = PAYLOAD_TYPES[task_type] if task_type else OpaquePayload
        if not isinstance(self.payload, expected):
            raise InvalidPayloadError(
                f"Task type '{self.type}' requires a {expected.__name__} payload, "
                f"got {type(self.payload).__name__}"
            )

    def __str__(self) -> str:
        return f"Task {self.task_id[:8]} | Type: {self.type} | Payload: {self.payload}"

    @property
    def task_type(self) -> Optional[TaskType]:
        return TaskType.parse(self.type)

    @staticmethod
    def create(task_type: str, payload: TaskPayload) -> "Task":
        return Task(
            task_id=str(uuid.uuid4()),
            type=str(task_type),
            payload=payload,
            created_at=utc_now(),
        )


@dataclass(frozen=True)
class Result:
    task_id: str
    type: str
    outcome: Outcome
    processed_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        object.__setattr__(self, "processed_at", to_wire_precision(self.processed_at))
        task_type = self.task_type
        if task_type is None:
            raise InvalidPayloadError(f"Result for unknown task type '{self.type}'")
        expected = OUTCOME_TYPES[task_type]
        if not isinstance(self.outcome, expected):
            raise InvalidPayloadError(
                f"Result type '{self.type}' requires a {expected.__name__} outcome, "
                f"got {type(self.outcome).__name__}"
            )

    def __str__(self) -> str:
        return f"Result {self.task_id[:8]} | Type: {self.type} | Outcome: {self.outcome}"

    @property
    def task_type(self) -> Optional[TaskType]:
        return TaskType.parse(self.type)


__all__ = [
    "TaskType",
    "ConvertCurrency",
    "CalculateInterest",
    "OpaquePayload",
    "ConvertedAmount",
    "AccruedInterest",
    "TaskPayload",
    "Outcome",
    "PAYLOAD_TYPES",
    "OUTCOME_TYPES",
    "Task",
    "Result",
    "to_wire_precision",
    "utc_now",
]
