from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from .errors import IndeterminateOutcome, NetworkError
from .events import decode_block_events, raffle_events
from .ledger import BlockResultsSource
from .models import ContributionRecord, TicketResult
from .notifications import Notifier
from .outcomes import scan_outcomes
from .store import PendingContributionStore

log = logging.getLogger(__name__)


class OutcomeResolver:
    """
    Drives open contributions to completion, one asyncio task per denom.

    Attempts for the same denom run strictly one after another; different
    denoms resolve independently. A run stops when the record completes, is
    removed, or the attempt/deadline budget runs out. In the last case the
    record is kept and retry() starts a fresh run.
    """

    def __init__(
        self,
        ledger: BlockResultsSource,
        store: PendingContributionStore,
        notifier: Notifier,
        poll_interval_s: float = 3.0,
        max_attempts: int = 20,
        deadline_s: float = 120.0,
        settlement_offset: int = 0,
        base64_attributes: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.store = store
        self.notifier = notifier
        self.poll_interval_s = poll_interval_s
        self.max_attempts = max_attempts
        self.deadline_s = deadline_s
        self.settlement_offset = settlement_offset
        self.base64_attributes = base64_attributes
        self._clock = clock
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}
        self._failures: Dict[str, IndeterminateOutcome] = {}

    def settlement_height(self, record: ContributionRecord) -> int:
        return record.submission_height + self.settlement_offset

    async def resolve_once(self, record: ContributionRecord) -> List[TicketResult]:
        """One pass over the settlement block; returns the newly decided tickets."""
        height = self.settlement_height(record)
        block = await self.ledger.get_block_results(height)
        events = raffle_events(decode_block_events(block, self.base64_attributes))
        found = scan_outcomes(events, record.address, record.denom, record.ticket_count)

        already = len(record.results)
        fresh = [found[i] for i in sorted(found) if i >= already]
        log.debug("%s: %d raffle event(s) at height %d, %d new outcome(s)",
                  record.denom, len(events), height, len(fresh))
        return fresh

    # ------------------------------------------------------------ task control

    def is_running(self, denom: str) -> bool:
        task = self._tasks.get(denom)
        return task is not None and not task.done()

    def last_error(self, denom: str) -> Optional[IndeterminateOutcome]:
        return self._failures.get(denom)

    def start(self, denom: str) -> asyncio.Task:
        task = self._tasks.get(denom)
        if task is not None and not task.done():
            return task
        self._failures.pop(denom, None)
        task = asyncio.get_running_loop().create_task(self._run(denom), name=f"resolve:{denom}")
        self._tasks[denom] = task
        task.add_done_callback(lambda t, d=denom: self._forget(d, t))
        return task

    def _forget(self, denom: str, task: asyncio.Task) -> None:
        if self._tasks.get(denom) is task:
            del self._tasks[denom]
        if not task.cancelled() and task.exception() is not None:
            log.error("Resolver for %s crashed", denom, exc_info=task.exception())

    def resume(self) -> List[str]:
        """Start a run for every unfinished record in the store."""
        keys = self.store.open_keys()
        for denom in keys:
            self.start(denom)
        if keys:
            log.info("Resuming %d pending contribution(s): %s", len(keys), ", ".join(keys))
        return keys

    def retry(self, denom: str) -> asyncio.Task:
        return self.start(denom)

    async def stop(self, denom: str) -> None:
        task = self._tasks.pop(denom, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self, denom: str) -> None:
        task = self._tasks.get(denom)
        if task is not None:
            await asyncio.shield(task)

    async def wait_all(self) -> None:
        while True:
            running = [t for t in self._tasks.values() if not t.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def aclose(self) -> None:
        for denom in list(self._tasks):
            await self.stop(denom)

    # --------------------------------------------------------------- main loop

    async def _run(self, denom: str) -> None:
        started = self._clock()
        attempts = 0

        while True:
            record = self.store.get_pending(denom)
            if record is None:
                log.debug("%s: record removed, stopping", denom)
                return
            if record.is_complete:
                return

            attempts += 1
            try:
                fresh = await self.resolve_once(record)
            except NetworkError as e:
                log.warning("%s: attempt %d failed: %s", denom, attempts, e)
                fresh = []

            if fresh:
                record, completed_now = await self.store.append_results(denom, fresh)
                if record is None:
                    return
                if record.is_complete:
                    log.info("%s: all %d ticket(s) resolved", denom, record.ticket_count)
                    if completed_now and record.was_closed:
                        self.notifier.completed(record)
                    return

            elapsed = self._clock() - started
            if attempts >= self.max_attempts or elapsed >= self.deadline_s:
                error = IndeterminateOutcome(denom, record.pending_tickets, attempts)
                self._failures[denom] = error
                log.warning("%s", error)
                self.notifier.failed(denom, error, record)
                return

            await self._sleep(self.poll_interval_s)
