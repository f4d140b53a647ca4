import asyncio

from feedgen.algos import FeedAlgorithm, FeedRegistry
from feedgen.app import start_refresh_tasks
from feedgen.feed import FeedService
from feedgen.scheduler import run_periodically


async def wait_for_calls(calls, count):
    while len(calls) < count:
        await asyncio.sleep(0.005)


def test_failures_do_not_stop_the_schedule():
    calls = []

    def job():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("first run fails")

    async def scenario():
        task = asyncio.create_task(run_periodically("job", job, interval=0.01))
        await asyncio.wait_for(wait_for_calls(calls, 3), timeout=5)
        task.cancel()

    asyncio.run(scenario())
    assert calls[:3] == [0, 1, 2]


def test_delayed_first_run():
    calls = []

    async def scenario():
        task = asyncio.create_task(run_periodically("job", lambda: calls.append(1), interval=10, run_first=False))
        await asyncio.sleep(0.05)
        task.cancel()

    asyncio.run(scenario())
    assert calls == []


class Refreshing(FeedAlgorithm):
    refresh_interval = 0.01

    def __init__(self, name):
        self.name = name
        self.refreshed = []

    def refresh(self, ctx):
        self.refreshed.append(ctx)


def test_refresh_tasks_run_per_algorithm():
    first, second = Refreshing("first"), Refreshing("second")
    service = FeedService(FeedRegistry([first, second]), verifier=lambda *args: None)

    async def scenario():
        tasks = start_refresh_tasks(service)
        await asyncio.wait_for(wait_for_calls(first.refreshed, 2), timeout=5)
        await asyncio.wait_for(wait_for_calls(second.refreshed, 2), timeout=5)
        for task in tasks:
            task.cancel()
        return tasks

    assert len(asyncio.run(scenario())) == 2
    assert first.refreshed[0] is service.ctx
