from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Tuple

from .coins import parse_amount
from .errors import DecodeError


@dataclass(frozen=True)
class TicketResult:
    index: int
    has_won: bool
    amount: Optional[Decimal] = None  # base units, only set for wins

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index, "has_won": self.has_won}
        if self.has_won and self.amount is not None:
            # Strings keep every digit; JSON numbers would go through float.
            out["amount"] = str(self.amount)
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TicketResult":
        has_won = bool(data["has_won"])
        amount = parse_amount(data["amount"]) if has_won and "amount" in data else None
        return TicketResult(index=int(data["index"]), has_won=has_won, amount=amount)


@dataclass(frozen=True)
class ContributionRecord:
    """
    Snapshot of one in-flight contribution.

    Records are immutable: every mutation builds a new record, so a reader
    holding one always sees a fully committed state.
    """

    denom: str
    address: str
    ticket_count: int
    submission_height: int
    results: Tuple[TicketResult, ...] = ()
    was_closed: bool = False
    created_at: float = 0.0
    tx_hash: str = ""

    def __post_init__(self) -> None:
        if self.ticket_count < 1:
            raise ValueError("ticket_count must be positive")
        if self.submission_height < 1:
            raise ValueError("submission_height must be positive")
        if len(self.results) > self.ticket_count:
            raise ValueError(
                f"{self.denom}: {len(self.results)} results for {self.ticket_count} tickets"
            )
        for i, r in enumerate(self.results):
            if r.index != i:
                raise ValueError(f"{self.denom}: result at position {i} has index {r.index}")

    @property
    def is_complete(self) -> bool:
        return len(self.results) == self.ticket_count

    @property
    def pending_tickets(self) -> Tuple[int, ...]:
        return tuple(range(len(self.results), self.ticket_count))

    def with_results(self, results: Iterable[TicketResult]) -> "ContributionRecord":
        """Append results that extend the contiguous prefix; anything else is ignored."""
        merged = list(self.results)
        for r in sorted(results, key=lambda r: r.index):
            if r.index == len(merged) and len(merged) < self.ticket_count:
                merged.append(r)
        return replace(self, results=tuple(merged))

    def closed(self) -> "ContributionRecord":
        return replace(self, was_closed=True)

    def same_contribution(self, other: "ContributionRecord") -> bool:
        return (
            self.submission_height == other.submission_height
            and self.address == other.address
            and self.ticket_count == other.ticket_count
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "denom": self.denom,
            "address": self.address,
            "ticket_count": self.ticket_count,
            "submission_height": self.submission_height,
            "results": [r.to_dict() for r in self.results],
            "is_complete": self.is_complete,
            "was_closed": self.was_closed,
            "created_at": self.created_at,
            "tx_hash": self.tx_hash,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ContributionRecord":
        try:
            return ContributionRecord(
                denom=str(data["denom"]),
                address=str(data["address"]),
                ticket_count=int(data["ticket_count"]),
                submission_height=int(data["submission_height"]),
                results=tuple(TicketResult.from_dict(r) for r in data.get("results", [])),
                was_closed=bool(data.get("was_closed", False)),
                created_at=float(data.get("created_at", 0.0)),
                tx_hash=str(data.get("tx_hash", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Invalid contribution record: {e}")


@dataclass(frozen=True)
class LedgerEvent:
    type: str
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmittedContribution:
    height: int
    tx_hash: str
