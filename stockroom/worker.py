"""Background worker process.

RUN:  python -m stockroom.worker

Same image as the API, different command:
  api:    uvicorn stockroom.main:app --host 0.0.0.0 --port 8000
  worker: python -m stockroom.worker

Two duties:
  1. Drain the registered task queues (round-robin, one task at a time)
  2. Every EXPIRY_SWEEP_SECONDS, flip overdue PENDING invitations to
     EXPIRED
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from collections.abc import Callable, Coroutine
from typing import Any

from stockroom.core.config import SETTINGS
from stockroom.core.logging import setup_logging
from stockroom.repos.store import store
from stockroom.services import organization_service
from stockroom.services.notifications import INVITATION_EMAIL_QUEUE
from stockroom.services.task_queue import task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("stockroom.worker")

EXPIRY_SWEEP_SECONDS = 300.0


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(INVITATION_EMAIL_QUEUE)
async def handle_invitation_email(payload: dict) -> None:
    """Hand the invitation off for delivery.

    Delivery itself lives outside this service; the worker records that
    the invitation is ready to send.
    """
    logger.info(
        "Invitation email ready  invitation=%s org=%s role=%s expires_at=%s",
        payload.get("invitation_id"),
        payload.get("organization_id"),
        payload.get("role"),
        payload.get("expires_at"),
    )


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------


async def run_once(timeout: int = 1) -> int:
    """Process at most one task per queue.  Returns how many ran."""
    processed = 0
    for queue_name, handler in HANDLERS.items():
        task = await task_queue.dequeue(queue_name, timeout=timeout)
        if task is None:
            continue
        try:
            await handler(task.payload)
        except Exception:
            # Dropped, not requeued
            logger.exception("Task %s on [%s] failed", task.id, queue_name)
        else:
            logger.info(
                "Task %s on [%s] completed  waited=%.1fs",
                task.id,
                queue_name,
                max(time.time() - task.enqueued_at, 0.0),
            )
        processed += 1
    return processed


async def sweep_expired_invitations() -> int:
    try:
        return await organization_service.expire_stale_invitations(store)
    except Exception:
        logger.exception("Invitation expiry sweep failed")
        return 0


async def run_worker(stop: asyncio.Event | None = None) -> None:
    """Loop until ``stop`` is set (SIGTERM/SIGINT when run as a script)."""
    stop = stop or asyncio.Event()
    logger.info("Worker started, listening on queues: %s", list(HANDLERS))
    next_sweep = 0.0
    while not stop.is_set():
        if time.monotonic() >= next_sweep:
            await sweep_expired_invitations()
            next_sweep = time.monotonic() + EXPIRY_SWEEP_SECONDS
        if await run_once() == 0:
            # In-memory queues return immediately; avoid a busy loop
            await asyncio.sleep(0.5)


async def _main() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)
    await run_worker(stop)
    logger.info("Worker stopped")


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(_main())
