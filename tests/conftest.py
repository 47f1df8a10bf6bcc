from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import pytest

from raffle_tracker.errors import NetworkError
from raffle_tracker.notifications import Notification, Notifier
from raffle_tracker.project_constants import RAFFLE_LOST_EVENT, RAFFLE_WINNER_EVENT
from raffle_tracker.resolver import OutcomeResolver
from raffle_tracker.store import PendingContributionStore

ADDRESS = "bze1participant0000000000000000000000000"
OTHER = "bze1someoneelse000000000000000000000000"
DENOM = "factory/bze1creator/vidulum"


def typed_event(event_type: str, **attrs: Any) -> Dict[str, Any]:
    """Raw event shaped like a typed event in a block_results response."""
    return {
        "type": event_type,
        "attributes": [
            {"key": k, "value": json.dumps(str(v)), "index": True} for k, v in attrs.items()
        ],
    }


def lost(address: str = ADDRESS, ticket: int | None = None, denom: str = DENOM) -> Dict[str, Any]:
    attrs: Dict[str, Any] = {"participant": address, "denom": denom}
    if ticket is not None:
        attrs["ticket"] = ticket
    return typed_event(RAFFLE_LOST_EVENT, **attrs)


def won(
    amount: int | str,
    address: str = ADDRESS,
    ticket: int | None = None,
    denom: str = DENOM,
) -> Dict[str, Any]:
    attrs: Dict[str, Any] = {"winner": address, "denom": denom, "amount": amount}
    if ticket is not None:
        attrs["ticket"] = ticket
    return typed_event(RAFFLE_WINNER_EVENT, **attrs)


def block(*events: Dict[str, Any]) -> Dict[str, Any]:
    return {"height": "100", "finalize_block_events": list(events)}


class FakeLedger:
    """In-memory block_results source; heights missing from `blocks` are not committed yet."""

    def __init__(self) -> None:
        self.blocks: Dict[int, Dict[str, Any]] = {}
        self.calls: List[int] = []
        self.failures = 0

    async def get_block_results(self, height: int) -> Dict[str, Any]:
        self.calls.append(height)
        if self.failures > 0:
            self.failures -= 1
            raise NetworkError("connection refused")
        if height not in self.blocks:
            raise NetworkError(f"height {height} must be less than or equal to the current height")
        return self.blocks[height]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path) -> PendingContributionStore:
    return PendingContributionStore(str(tmp_path / "pending.json")).load()


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def notifications(notifier) -> List[Notification]:
    received: List[Notification] = []
    notifier.subscribe(received.append)
    return received


@pytest.fixture
def resolver(ledger, store, notifier, clock) -> OutcomeResolver:
    async def no_sleep(_seconds: float) -> None:
        # Yield so other tasks (and tests) can interleave between attempts.
        await asyncio.sleep(0)

    return OutcomeResolver(
        ledger,
        store,
        notifier,
        poll_interval_s=0,
        max_attempts=5,
        deadline_s=60,
        clock=clock,
        sleep=no_sleep,
    )
