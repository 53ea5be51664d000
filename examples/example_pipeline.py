"""
Example running the whole exchange in one process.

This example shows how to:
1. Use a Submitter to publish tasks
2. Run a TaskWorker and a ResultCollector against the same channels
3. Look results up in the result store by task id

Run with: python examples/example_pipeline.py
"""

import asyncio
import logging

from calclane.broker import Submitter
from calclane.channel import InMemoryChannel
from calclane.collector import ResultCollector
from calclane.result import InMemoryResultStore
from calclane.worker import TaskWorker


async def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    tasks = InMemoryChannel(name="tasks")
    results = InMemoryChannel(name="results")
    store = InMemoryResultStore()

    submitter = Submitter(task_channel=tasks)
    worker = TaskWorker(task_channel=tasks, result_channel=results, wait_seconds=1, cycle_interval=0.1)
    collector = ResultCollector(result_channel=results, store=store, wait_seconds=1, cycle_interval=0.1)

    print("\n=== Submitting ===\n")
    conversion = await submitter.submit(
        "convert_currency", {"amount": 100, "fromCurrency": "USD", "toCurrency": "EUR"}
    )
    interest = await submitter.submit(
        "calculate_interest", {"principal": 1000, "annualRate": 5, "days": 365}
    )
    unsupported = await submitter.submit("unknown_op", {"x": 1})

    await worker.start()
    await collector.start()

    print("\n=== Results ===\n")
    for task_id in (conversion, interest, unsupported):
        result = await store.wait_for(task_id, timeout=3)
        print(f"  {task_id[:8]} -> {result.outcome if result else 'no result'}")

    await worker.stop()
    await collector.stop()


if __name__ == "__main__":
    asyncio.run(main())
