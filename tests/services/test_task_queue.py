from __future__ import annotations

import asyncio

from stockroom.services.task_queue import (
    QUEUE_KEY_PREFIX,
    InMemoryTaskQueue,
    RedisTaskQueue,
    Task,
)


class _FakeRedisList:
    """Just enough of the redis list API for RedisTaskQueue."""

    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}
        self.brpop_timeouts: list[int] = []

    async def lpush(self, key: str, value: str) -> int:
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    async def brpop(self, key: str, timeout: int):
        self.brpop_timeouts.append(timeout)
        items = self.lists.get(key)
        if not items:
            return None
        return key, items.pop()

    async def llen(self, key: str) -> int:
        return len(self.lists.get(key, []))


def test_in_memory_queue_is_fifo_per_queue() -> None:
    queue = InMemoryTaskQueue()

    async def scenario():
        await queue.enqueue("mail", {"n": 1})
        await queue.enqueue("mail", {"n": 2})
        await queue.enqueue("other", {"n": 3})
        first = await queue.dequeue("mail")
        second = await queue.dequeue("mail")
        empty = await queue.dequeue("mail")
        return first, second, empty, await queue.queue_length("other")

    first, second, empty, other_len = asyncio.run(scenario())
    assert first.payload == {"n": 1}
    assert second.payload == {"n": 2}
    assert empty is None
    assert other_len == 1


def test_task_encode_decode_keeps_every_field() -> None:
    task = Task(queue="mail", payload={"email": "bob@x.com"})
    decoded = Task.decode(task.encode().encode())
    assert decoded == task


def test_redis_queue_round_trips_through_prefixed_list() -> None:
    fake = _FakeRedisList()
    queue = RedisTaskQueue(fake)

    async def scenario():
        sent_a = await queue.enqueue("mail", {"n": 1})
        sent_b = await queue.enqueue("mail", {"n": 2})
        length = await queue.queue_length("mail")
        got_a = await queue.dequeue("mail", timeout=0)
        got_b = await queue.dequeue("mail")
        return sent_a, sent_b, length, got_a, got_b, await queue.dequeue("mail")

    sent_a, sent_b, length, got_a, got_b, empty = asyncio.run(scenario())
    assert f"{QUEUE_KEY_PREFIX}mail" in fake.lists
    assert length == 2
    assert (got_a, got_b) == (sent_a, sent_b)
    assert empty is None
    # A zero timeout never reaches BRPOP, where it would block forever
    assert fake.brpop_timeouts[0] == 1
