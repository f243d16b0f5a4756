"""Work handed from the API to the worker process.

Each named queue is a Redis list under ``tasks:<name>``.  The API pushes
on the left and returns; the worker blocks on the right, so tasks come
out in the order they went in.

A task popped by a worker that then dies is gone.  Invitation emails are
the only producer, and re-inviting the same address re-sends one.
"""

from __future__ import annotations

import json
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Protocol, runtime_checkable

from stockroom.db.redis import redis_pool

QUEUE_KEY_PREFIX = "tasks:"


@dataclass(frozen=True, slots=True)
class Task:
    queue: str
    payload: dict
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    enqueued_at: float = field(default_factory=time.time)

    def encode(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def decode(cls, raw: str | bytes) -> "Task":
        return cls(**json.loads(raw))


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """Process-local queues; dequeue never blocks."""

    def __init__(self) -> None:
        self._queues: dict[str, deque[Task]] = {}

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(queue=queue, payload=payload)
        self._queues.setdefault(queue, deque()).append(task)
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        pending = self._queues.get(queue)
        return pending.popleft() if pending else None

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, ()))


class RedisTaskQueue:
    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(queue=queue, payload=payload)
        await self._redis.lpush(QUEUE_KEY_PREFIX + queue, task.encode())
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        # BRPOP with timeout=0 would block forever, so clamp to one second
        popped = await self._redis.brpop(QUEUE_KEY_PREFIX + queue, timeout=max(timeout, 1))
        if popped is None:
            return None
        return Task.decode(popped[1])

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(QUEUE_KEY_PREFIX + queue)


task_queue: TaskQueue = (
    RedisTaskQueue(redis_pool) if redis_pool is not None else InMemoryTaskQueue()
)
