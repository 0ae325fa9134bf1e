"""Domain-aware scheduling of page tasks.

Each hostname gets a small state record: a semaphore capping in-flight pages
for that host, a lock that makes "check the last dispatch time, then record a
new one" atomic, and the last dispatch timestamp. A single global semaphore
caps in-flight pages across all hosts.

Dispatch order for one URL:

1. acquire the host gate (at most ``per_domain_limit`` in flight per host)
2. under the host lock, sleep until ``last_dispatch + delay``
3. acquire the global gate, record ``last_dispatch = now``, release the lock
4. run the worker

The delay wait never holds a global slot, and a slow host never blocks the
lock of another host.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .outcome import ProcessingOutcome
from .reporter_utils import hostname_of

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
Worker = Callable[[str], Awaitable[ProcessingOutcome]]


def group_by_host(urls: Iterable[str]) -> "OrderedDict[str, List[str]]":
    """Group URLs by hostname in first-seen order; unparsable URLs land in ``invalid``."""

    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for url in urls:
        groups.setdefault(hostname_of(url), []).append(url)
    return groups


@dataclass
class DomainState:
    gate: asyncio.Semaphore
    lock: asyncio.Lock
    last_dispatch: Optional[float] = None
    in_flight: int = 0


class DomainScheduler:
    def __init__(
        self,
        global_limit: int,
        per_domain_limit: int,
        delay_seconds: float,
        *,
        sequential: bool = False,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        if global_limit < 1 or per_domain_limit < 1:
            raise ValueError("concurrency limits must be >= 1")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.global_limit = global_limit
        self.per_domain_limit = per_domain_limit
        self.delay_seconds = delay_seconds
        self.sequential = sequential
        self._clock: Clock = clock or time.monotonic
        self._sleep: Sleep = sleep or asyncio.sleep
        self._states: Dict[str, DomainState] = {}
        self._global_gate: Optional[asyncio.Semaphore] = None
        self._in_flight = 0
        self.dispatch_log: List[Tuple[str, float]] = []
        self.peak_in_flight = 0
        self.peak_in_flight_by_host: Dict[str, int] = {}

    def _state_for(self, host: str) -> DomainState:
        state = self._states.get(host)
        if state is None:
            state = DomainState(gate=asyncio.Semaphore(self.per_domain_limit), lock=asyncio.Lock())
            self._states[host] = state
        return state

    async def _wait_for_turn(self, host: str, state: DomainState) -> None:
        if state.last_dispatch is None or self.delay_seconds <= 0:
            return
        remaining = state.last_dispatch + self.delay_seconds - self._clock()
        if remaining > 0:
            logger.debug("Waiting %.0fms before next request to %s", remaining * 1000, host)
            await self._sleep(remaining)

    def _enter(self, host: str, state: DomainState) -> None:
        self._in_flight += 1
        state.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        self.peak_in_flight_by_host[host] = max(self.peak_in_flight_by_host.get(host, 0), state.in_flight)

    def _leave(self, state: DomainState) -> None:
        self._in_flight -= 1
        state.in_flight -= 1

    async def _invoke(self, url: str, worker: Worker) -> ProcessingOutcome:
        try:
            return await worker(url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error while processing %s", url)
            return ProcessingOutcome.failure(url, exc, kind="internal")

    async def _dispatch(self, url: str, worker: Worker) -> ProcessingOutcome:
        if self._global_gate is None:
            raise RuntimeError("DomainScheduler.run() sets up the global gate; call it instead of _dispatch")
        host = hostname_of(url)
        state = self._state_for(host)
        async with state.gate:
            async with state.lock:
                await self._wait_for_turn(host, state)
                await self._global_gate.acquire()
                state.last_dispatch = self._clock()
                self.dispatch_log.append((host, state.last_dispatch))
            self._enter(host, state)
            try:
                return await self._invoke(url, worker)
            finally:
                self._leave(state)
                self._global_gate.release()

    async def run(self, urls: Iterable[str], worker: Worker) -> List[ProcessingOutcome]:
        """Process every URL through ``worker``; returns one outcome per URL in completion order."""

        pending = list(urls)
        self._global_gate = asyncio.Semaphore(self.global_limit)
        groups = group_by_host(pending)
        logger.info(
            "Scheduling %d URLs across %d hosts (global=%d, per_domain=%d, delay=%.0fms)",
            len(pending),
            len(groups),
            self.global_limit,
            self.per_domain_limit,
            self.delay_seconds * 1000,
        )

        outcomes: List[ProcessingOutcome] = []
        if self.sequential or len(pending) <= 1:
            logger.info("Processing URLs sequentially")
            for index, url in enumerate(pending, start=1):
                outcome = await self._dispatch(url, worker)
                outcomes.append(outcome)
                self._log_progress(index, len(pending), outcome)
            return outcomes

        tasks = [asyncio.create_task(self._dispatch(url, worker)) for url in pending]
        try:
            for index, future in enumerate(asyncio.as_completed(tasks), start=1):
                outcome = await future
                outcomes.append(outcome)
                self._log_progress(index, len(pending), outcome)
        finally:
            leftovers = [task for task in tasks if not task.done()]
            for task in leftovers:
                task.cancel()
            if leftovers:
                # Let cancelled pages release their contexts before the browser closes.
                await asyncio.gather(*leftovers, return_exceptions=True)
        return outcomes

    @staticmethod
    def _log_progress(index: int, total: int, outcome: ProcessingOutcome) -> None:
        if outcome.success:
            logger.info("[%d/%d] done %s (%d violations)", index, total, outcome.url, outcome.violation_count)
        else:
            kind = outcome.error.kind if outcome.error else "unknown"
            logger.warning("[%d/%d] failed %s (%s)", index, total, outcome.url, kind)


__all__ = ["DomainState", "DomainScheduler", "group_by_host"]
