from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from hibeats.models import Pending, TaskHandle, TaskStatus, TimedOut
from hibeats.providers.base import GenerationClient

log = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 10.0
DEFAULT_MAX_ATTEMPTS = 30  # ~5 minutes at the default interval

Sleep = Callable[[float], Awaitable[None]]
AttemptHook = Callable[[int, TaskStatus], None]


class CompletionPoller:
    """
    Waits for a task to reach a terminal status.

    Each attempt is one status query; the blocking HTTP call runs on a worker
    thread so the event loop stays free. Between attempts the poller awaits
    `sleep`, which is injectable so tests can run on simulated time. Any
    ServiceError from the client aborts immediately; it is never folded into
    Pending.
    """

    def __init__(
        self,
        client: GenerationClient,
        *,
        sleep: Optional[Sleep] = None,
        on_attempt: Optional[AttemptHook] = None,
    ) -> None:
        self.client = client
        self.sleep: Sleep = sleep or asyncio.sleep
        self.on_attempt = on_attempt

    async def await_completion(
        self,
        handle: TaskHandle,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval_s: float = DEFAULT_INTERVAL_S,
    ) -> TaskStatus:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")

        for attempt in range(1, max_attempts + 1):
            status = await asyncio.to_thread(self.client.query_status, handle)
            log.debug(
                "poll task_id=%s attempt=%d/%d status=%s",
                handle.task_id,
                attempt,
                max_attempts,
                type(status).__name__,
            )
            if self.on_attempt is not None:
                self.on_attempt(attempt, status)

            if not isinstance(status, Pending):
                return status

            if attempt < max_attempts:
                await self.sleep(interval_s)

        log.info("poll task_id=%s still pending after %d attempts", handle.task_id, max_attempts)
        return TimedOut(attempts=max_attempts)
