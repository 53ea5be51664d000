from typing import Callable, Dict

from calclane.exceptions import UnhandledTaskTypeError
from calclane.task.core import Outcome, TaskPayload, TaskType

Handler = Callable[[TaskPayload], Outcome]


class HandlerRegistry:
    def __init__(self):
        self._registry: Dict[TaskType, Handler] = {}

    def register(self, task_type: TaskType, handler: Handler) -> Handler:
        self._registry[TaskType(task_type)] = handler
        return handler

    def get(self, tag: str) -> Handler:
        task_type = TaskType.parse(tag)
        handler = self._registry.get(task_type) if task_type else None
        if handler is None:
            raise UnhandledTaskTypeError(f"No handler registered for task type '{tag}'.")
        return handler

    def all(self) -> Dict[TaskType, Handler]:
        return self._registry
