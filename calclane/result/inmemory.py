import asyncio
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from calclane.result.base import ResultStore
from calclane.task import Result


class InMemoryResultStore(ResultStore):
    """Append-only store of collected results.

    Results are kept in arrival order and are not deduplicated: a redelivered
    result message shows up twice. The collector is the only writer; readers
    get copies, so they never see a half-applied append.
    """

    def __init__(self):
        self._results: List[Result] = []
        self._by_task: Dict[str, List[Result]] = defaultdict(list)

    async def append(self, result: Result) -> None:
        self._results.append(result)
        self._by_task[result.task_id].append(result)

    async def snapshot(self) -> Tuple[Result, ...]:
        return tuple(self._results)

    async def get(self, task_id: str) -> List[Result]:
        return list(self._by_task.get(task_id, []))

    async def count(self) -> int:
        return len(self._results)

    async def wait_for(
        self,
        task_id: str,
        timeout: float,
        poll_interval: float = 0.1,
    ) -> Optional[Result]:
        """First result for task_id, or None if none arrives within timeout."""
        deadline = asyncio.get_running_loop().time() + timeout
        while True:
            results = self._by_task.get(task_id)
            if results:
                return results[0]
            if asyncio.get_running_loop().time() >= deadline:
                return None
            await asyncio.sleep(poll_interval)


__all__ = ["InMemoryResultStore"]
