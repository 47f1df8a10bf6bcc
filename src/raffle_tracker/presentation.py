from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .coins import sum_amounts, to_tokens
from .models import ContributionRecord
from .project_constants import DEFAULT_DECIMALS
from .store import PendingContributionStore


class PresentationState(Enum):
    IDLE = "idle"
    SHOWING_WIN = "win"
    SHOWING_LOSE = "lose"
    WAITING = "waiting"
    SUMMARY = "summary"
    CLOSED = "closed"


def presentation_state(record: Optional[ContributionRecord], cursor: int) -> PresentationState:
    """What to show for `record` when the reveal cursor points at ticket `cursor`."""
    if record is None:
        return PresentationState.IDLE
    if record.was_closed:
        return PresentationState.CLOSED
    if cursor >= record.ticket_count and record.is_complete:
        return PresentationState.SUMMARY
    if cursor < len(record.results):
        if record.results[cursor].has_won:
            return PresentationState.SHOWING_WIN
        return PresentationState.SHOWING_LOSE
    return PresentationState.WAITING


@dataclass(frozen=True)
class ContributionSummary:
    total_won: Decimal  # base units
    winners: int
    losers: int


def summarize(record: ContributionRecord) -> ContributionSummary:
    wins = [r for r in record.results if r.has_won]
    return ContributionSummary(
        total_won=sum_amounts(r.amount for r in wins if r.amount is not None),
        winners=len(wins),
        losers=len(record.results) - len(wins),
    )


class Presentation:
    """
    Ticket-by-ticket reveal of one denom's contribution.

    Holds nothing but the cursor; the record is read from the store on every
    access so background results show up as soon as they are committed.
    """

    def __init__(self, store: PendingContributionStore, denom: str) -> None:
        self.store = store
        self.denom = denom
        self.cursor = 0
        self._closed = False

    @property
    def record(self) -> Optional[ContributionRecord]:
        return self.store.get_pending(self.denom)

    @property
    def state(self) -> PresentationState:
        if self._closed:
            return PresentationState.CLOSED
        return presentation_state(self.record, self.cursor)

    def advance(self) -> PresentationState:
        self.cursor += 1
        return self.state

    def current_amount(self, decimals: int = DEFAULT_DECIMALS) -> Optional[Decimal]:
        record = self.record
        if record is None or self.cursor >= len(record.results):
            return None
        result = record.results[self.cursor]
        if not result.has_won or result.amount is None:
            return None
        return to_tokens(result.amount, decimals)

    def summary(self) -> Optional[ContributionSummary]:
        record = self.record
        return summarize(record) if record is not None else None

    async def close(self) -> None:
        # Complete records are dropped; unfinished ones keep resolving in the background.
        await self.store.close_presentation(self.denom)
        self._closed = True
