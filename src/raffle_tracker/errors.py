from __future__ import annotations

from typing import Sequence


class RaffleTrackerError(RuntimeError):
    """Base class for every error raised by raffle_tracker."""


class ConfigError(RaffleTrackerError):
    pass


class NetworkError(RaffleTrackerError):
    """The ledger could not be reached or answered with an error payload."""


class DecodeError(RaffleTrackerError):
    """A single event, attribute or coin string could not be decoded."""


class InvalidContributionError(RaffleTrackerError):
    pass


class ContributionInProgressError(RaffleTrackerError):
    def __init__(self, denom: str) -> None:
        super().__init__(
            f"A contribution for {denom} is still being resolved; "
            "wait for it to finish or remove it first."
        )
        self.denom = denom


class IndeterminateOutcome(RaffleTrackerError):
    """
    No definitive win/loss event was found for some tickets.

    Raised (and published as a failure notification) only once the resolver
    has exhausted its attempts. The record is kept so the caller can retry.
    """

    def __init__(self, denom: str, tickets: Sequence[int], attempts: int) -> None:
        listed = ", ".join(str(t) for t in tickets)
        super().__init__(
            f"{denom}: no outcome after {attempts} attempt(s) for ticket(s) {listed}"
        )
        self.denom = denom
        self.tickets = tuple(tickets)
        self.attempts = attempts


class StoreConflictError(RaffleTrackerError):
    """The store file was rewritten by someone else since this process last read it."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"{path} was changed by another process; "
            "only one tracker may own a store file at a time."
        )
        self.path = path
