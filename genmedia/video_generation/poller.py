"""
Job Poller - waits for a submitted job to reach a terminal state.

This is the only place the orchestrator blocks on remote processing.
The interval is fixed (no backoff, no jitter). The wait can be abandoned
through a cancel event or a deadline.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from .endpoint import GenerationEndpoint
from .errors import GenerationCancelled, GenerationTimeout
from .models import Job

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0  # seconds


class JobPoller:
    """
    Drives a job to completion by repeated polling.

    Usage:
        poller = JobPoller(endpoint, interval=10.0)
        job = await poller.wait(job)
        if job.failed:
            ...

    The poller does not judge success or failure; it returns as soon as the
    job reports done either way.
    """

    def __init__(
        self,
        endpoint: GenerationEndpoint,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_poll: Optional[Callable[[Job, int], None]] = None,
    ):
        self.endpoint = endpoint
        self.interval = interval
        self.on_poll = on_poll

    async def _sleep(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> None:
        """Sleep, waking early if the caller cancels."""
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return

    async def wait(
        self,
        job: Job,
        interval: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> Job:
        """
        Poll until ``job.done``.

        Args:
            job: Freshly submitted job snapshot
            interval: Seconds between polls (defaults to the poller's)
            cancel_event: Set it to abandon the wait
            timeout: Give up after this many seconds

        Returns:
            The first snapshot reporting done

        Raises:
            GenerationCancelled: cancel_event was set
            GenerationTimeout: timeout elapsed first
            Exception: anything the endpoint's poll raises, unchanged
        """
        interval = self.interval if interval is None else interval
        deadline = None if timeout is None else time.monotonic() + timeout
        polls = 0

        while not job.done:
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled(f"Wait for job {job.name} cancelled", stage="poll")

            delay = interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise GenerationTimeout(
                        f"Job {job.name} did not complete within {timeout} seconds"
                    )
                delay = min(delay, remaining)

            await self._sleep(delay, cancel_event)

            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled(f"Wait for job {job.name} cancelled", stage="poll")
            if deadline is not None and time.monotonic() >= deadline:
                raise GenerationTimeout(
                    f"Job {job.name} did not complete within {timeout} seconds"
                )

            job = await self.endpoint.poll(job)
            polls += 1
            logger.debug(f"Job {job.name}: poll {polls}, status={job.status.value}")

            if self.on_poll:
                self.on_poll(job, polls)

        return job
