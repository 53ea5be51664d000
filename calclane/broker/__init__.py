"""
Broker module for task and result exchange.

This module provides:
- Serializer: Defines the wire schema of task and result messages
- Submitter: Builds tasks and publishes them to the task channel

Example usage:
    from calclane.channel import LMDBChannel
    from calclane.broker import Submitter

    task_channel = LMDBChannel(path="/tmp/calclane/tasks")

    submitter = Submitter(task_channel=task_channel)
    task_id = await submitter.submit(
        "calculate_interest",
        {"principal": 1000, "annualRate": 5, "days": 365},
    )
"""

from .base import Serializer
from .serializer import JSONSerializer
from .submitter import Submitter

__all__ = [
    # Abstract interfaces
    "Serializer",
    # Implementations
    "JSONSerializer",
    "Submitter",
]
