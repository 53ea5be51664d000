"""Pure task handlers.

Each handler maps a payload to an outcome with no side effects, so running
one twice on a redelivered task yields the same outcome.
"""

from functools import partial

from calclane.task.core import (
    AccruedInterest,
    CalculateInterest,
    ConvertCurrency,
    ConvertedAmount,
    TaskType,
)
from calclane.task.register import HandlerRegistry

DEFAULT_CONVERSION_RATE = 1.1
DAYS_PER_YEAR = 365


def convert_currency(payload: ConvertCurrency, rate: float = DEFAULT_CONVERSION_RATE) -> ConvertedAmount:
    """Convert with a fixed configured rate; no live rate lookup."""
    return ConvertedAmount(converted_amount=payload.amount * rate)


def calculate_interest(payload: CalculateInterest) -> AccruedInterest:
    """Simple interest over `days` at an annual percentage rate."""
    interest = payload.principal * (payload.annual_rate / 100) * (payload.days / DAYS_PER_YEAR)
    return AccruedInterest(interest=interest)


def default_registry(conversion_rate: float = DEFAULT_CONVERSION_RATE) -> HandlerRegistry:
    """Registry with a handler for every known task type."""
    registry = HandlerRegistry()
    registry.register(TaskType.CONVERT_CURRENCY, partial(convert_currency, rate=conversion_rate))
    registry.register(TaskType.CALCULATE_INTEREST, calculate_interest)
    return registry


__all__ = [
    "DEFAULT_CONVERSION_RATE",
    "convert_currency",
    "calculate_interest",
    "default_registry",
]
