"""
Calclane - asynchronous task and result exchange over at-least-once channels.

A submitter publishes tasks to a task channel, a worker loop turns them into
results on a result channel, and a collector loop gathers the results into a
result store where they can be looked up by task id.

Quick Start:
    from calclane.channel import InMemoryChannel
    from calclane.broker import Submitter
    from calclane.worker import TaskWorker
    from calclane.collector import ResultCollector

    tasks = InMemoryChannel(name="tasks")
    results = InMemoryChannel(name="results")

    # Submitter side
    submitter = Submitter(task_channel=tasks)
    task_id = await submitter.submit(
        "convert_currency",
        {"amount": 100, "fromCurrency": "USD", "toCurrency": "EUR"},
    )

    # Worker side
    worker = TaskWorker(task_channel=tasks, result_channel=results)
    await worker.start()

    # Collector side
    collector = ResultCollector(result_channel=results)
    await collector.start()
    result = await collector.store.wait_for(task_id, timeout=30)
"""

__version__ = "0.1.0"
