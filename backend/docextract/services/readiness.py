"""
Readiness Poller

Waits until every uploaded file has left the provider's transient
"processing" state.

Handles are polled one after another, in upload order:

  get_file(name) ──► processing? ──► sleep(interval) ──► get_file(name) ...
                       │
                       ├─ ready   → next handle
                       └─ failed  → FileProcessingFailedError (remaining handles abandoned)

The wait is bounded per file: once max_wait_seconds have elapsed while the
file is still processing, FileReadinessTimeoutError is raised. The interval
grows by backoff_multiplier after each sleep, capped at max_interval_seconds
(multiplier 1.0 keeps a fixed interval).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from docextract.core.errors import FileProcessingFailedError, FileReadinessTimeoutError
from docextract.llm.base import FileInferenceProvider
from docextract.models.upload import RemoteFileHandle, RemoteFileState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollingPolicy:
    interval_seconds:     float = 10.0
    backoff_multiplier:   float = 1.0
    max_interval_seconds: float = 60.0
    max_wait_seconds:     float = 600.0

    def next_interval(self, current: float) -> float:
        return min(current * self.backoff_multiplier, self.max_interval_seconds)


class ReadinessPoller:
    """
    Constructor args:
        provider : shared FileInferenceProvider
        policy   : PollingPolicy (interval, backoff, max wait)
        sleep    : awaitable sleep, injectable for tests
        clock    : monotonic clock, injectable for tests
    """

    def __init__(
        self,
        provider: FileInferenceProvider,
        policy:   PollingPolicy | None = None,
        sleep:    Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock:    Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._policy   = policy or PollingPolicy()
        self._sleep    = sleep
        self._clock    = clock

    async def wait_until_ready(self, handles: list[RemoteFileHandle]) -> list[RemoteFileHandle]:
        """Return refreshed handles, all in the ready state, in input order."""
        logger.info("Readiness | waiting for %d file(s)", len(handles))
        ready = [await self._wait_for(handle) for handle in handles]
        logger.info("Readiness | all files are ready")
        return ready

    async def _wait_for(self, handle: RemoteFileHandle) -> RemoteFileHandle:
        policy   = self._policy
        interval = policy.interval_seconds
        started  = self._clock()
        polls    = 1

        current = await self._provider.get_file(handle.name)
        while current.state is RemoteFileState.PROCESSING:
            waited = self._clock() - started
            if waited >= policy.max_wait_seconds:
                raise FileReadinessTimeoutError(handle.name, waited)
            await self._sleep(min(interval, policy.max_wait_seconds - waited))
            interval = policy.next_interval(interval)
            current  = await self._provider.get_file(handle.name)
            polls   += 1

        if current.state is not RemoteFileState.READY:
            logger.warning(
                "Readiness | file=%s ended in state=%s after %d poll(s)",
                handle.name, current.raw_state or current.state.value, polls,
            )
            raise FileProcessingFailedError(handle.name, current.raw_state or current.state.value)

        logger.debug("Readiness | file=%s ready after %d poll(s)", handle.name, polls)
        return current
