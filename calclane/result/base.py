from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from calclane.task import Result


class ResultStore(ABC):
    @abstractmethod
    async def append(self, result: Result) -> None: ...

    @abstractmethod
    async def snapshot(self) -> Tuple[Result, ...]: ...

    @abstractmethod
    async def get(self, task_id: str) -> List[Result]: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def wait_for(
        self,
        task_id: str,
        timeout: float,
        poll_interval: float = 0.1,
    ) -> Optional[Result]: ...
