from .core import (
    AccruedInterest,
    CalculateInterest,
    ConvertCurrency,
    ConvertedAmount,
    OpaquePayload,
    Outcome,
    Result,
    Task,
    TaskPayload,
    TaskType,
    utc_now,
)
from .handlers import default_registry
from .register import Handler, HandlerRegistry

__all__ = [
    "Task",
    "Result",
    "TaskType",
    "TaskPayload",
    "Outcome",
    "ConvertCurrency",
    "CalculateInterest",
    "OpaquePayload",
    "ConvertedAmount",
    "AccruedInterest",
    "Handler",
    "HandlerRegistry",
    "default_registry",
    "utc_now",
]
