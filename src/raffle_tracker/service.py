from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from .cache import TtlCache
from .config import Settings
from .errors import (
    ContributionInProgressError,
    InvalidContributionError,
    RaffleTrackerError,
)
from .ledger import ContributionSubmitter, LedgerClient
from .models import ContributionRecord
from .notifications import Notifier
from .presentation import Presentation
from .queries import CachedQueries
from .resolver import OutcomeResolver
from .store import PendingContributionStore


class Contributions:
    """Entry point for a UI layer: track, reveal, close and retry contributions."""

    def __init__(
        self,
        store: PendingContributionStore,
        resolver: OutcomeResolver,
        notifier: Notifier,
        queries: Optional[CachedQueries] = None,
        submitter: Optional[ContributionSubmitter] = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.notifier = notifier
        self.queries = queries
        self.submitter = submitter
        self._submit_locks: Dict[str, asyncio.Lock] = {}

    async def contribute(self, denom: str, address: str, ticket_count: int) -> ContributionRecord:
        if self.submitter is None:
            raise RaffleTrackerError("No contribution submitter configured (wallet not connected).")
        if ticket_count < 1:
            raise InvalidContributionError(f"ticket count must be positive, got {ticket_count}")

        lock = self._submit_locks.get(denom)
        if lock is None:
            lock = self._submit_locks[denom] = asyncio.Lock()

        # Check, pay and record happen under one lock per denom.
        async with lock:
            existing = self.store.get_pending(denom)
            if existing is not None and not existing.is_complete:
                raise ContributionInProgressError(denom)

            submitted = await self.submitter.submit_contribution(denom, ticket_count)
            return await self.track(denom, address, ticket_count, submitted.height, submitted.tx_hash)

    async def track(
        self,
        denom: str,
        address: str,
        ticket_count: int,
        height: int,
        tx_hash: str = "",
    ) -> ContributionRecord:
        if ticket_count < 1:
            raise InvalidContributionError(f"ticket count must be positive, got {ticket_count}")
        if height < 1:
            raise InvalidContributionError(f"height must be positive, got {height}")
        record = await self.store.create(denom, address, ticket_count, height, tx_hash)
        if self.queries is not None:
            # The pot just changed.
            self.queries.invalidate_raffles()
        self.resolver.start(denom)
        return record

    def get_pending_contribution(self, denom: str) -> Optional[ContributionRecord]:
        return self.store.get_pending(denom)

    async def remove_pending_contribution(self, denom: str) -> None:
        await self.resolver.stop(denom)
        await self.store.remove_pending(denom)

    async def mark_as_closed(self, denom: str) -> Optional[ContributionRecord]:
        return await self.store.mark_closed(denom)

    def retry(self, denom: str) -> None:
        if self.store.get_pending(denom) is None:
            raise RaffleTrackerError(f"No pending contribution for {denom}.")
        self.resolver.retry(denom)

    def presentation(self, denom: str) -> Presentation:
        return Presentation(self.store, denom)

    def resume(self) -> None:
        self.resolver.resume()

    async def aclose(self) -> None:
        await self.resolver.aclose()
        self.store.close()


@asynccontextmanager
async def open_contributions(
    settings: Settings,
    submitter: Optional[ContributionSubmitter] = None,
) -> AsyncIterator[Contributions]:
    """Build the whole stack from settings and tear it down on exit."""
    ledger = LedgerClient(settings.rpc_url, settings.rest_url, timeout_s=settings.timeout_s)
    store = PendingContributionStore(settings.store_path).load()
    notifier = Notifier()
    resolver = OutcomeResolver(
        ledger,
        store,
        notifier,
        poll_interval_s=settings.poll_interval_s,
        max_attempts=settings.max_attempts,
        deadline_s=settings.deadline_s,
        settlement_offset=settings.settlement_offset,
        base64_attributes=settings.base64_attributes,
    )
    contributions = Contributions(
        store,
        resolver,
        notifier,
        queries=CachedQueries(ledger, TtlCache()),
        submitter=submitter,
    )
    try:
        yield contributions
    finally:
        try:
            await contributions.aclose()
        finally:
            await ledger.close()
