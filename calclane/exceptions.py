from typing import Any, Dict, Optional


class CalclaneError(Exception):
    """Base exception for Calclane"""
    pass

class ChannelError(CalclaneError):
    """Raised when a channel send, receive or delete fails"""
    pass

class DecodeError(CalclaneError):
    """Raised when a message body cannot be turned into a Task or Result"""
    pass

class MalformedMessageError(DecodeError):
    """Raised when a message body is not a well-formed task or result"""
    pass

class UnknownTaskTypeError(DecodeError):
    """Raised when a message parses but its type matches no known variant.

    The parsed fields are kept so the caller can drop or dead-letter the message.
    """

    def __init__(
        self,
        task_type: str,
        task_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"Unknown task type '{task_type}'")
        self.task_type = task_type
        self.task_id = task_id
        self.payload = payload or {}

class UnhandledTaskTypeError(CalclaneError):
    """Raised when no handler is registered for a task type"""
    pass

class InvalidPayloadError(CalclaneError, ValueError):
    """Raised when a payload does not match the variant its task type requires"""
    pass


__all__ = [
    'CalclaneError',
    'ChannelError',
    'DecodeError',
    'MalformedMessageError',
    'UnknownTaskTypeError',
    'UnhandledTaskTypeError',
    'InvalidPayloadError',
]
