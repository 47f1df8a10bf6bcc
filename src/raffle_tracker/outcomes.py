from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from .coins import parse_amount
from .errors import DecodeError
from .events import RaffleEventKind
from .models import LedgerEvent, TicketResult
from .project_constants import TICKET_ATTRIBUTE

log = logging.getLogger(__name__)


def _ticket_of(ev: LedgerEvent, ticket_count: int) -> Optional[int]:
    raw = ev.attributes.get(TICKET_ATTRIBUTE)
    if raw is None:
        # Without an identifier only a single-ticket batch is unambiguous.
        return 0 if ticket_count == 1 else None
    try:
        ticket = int(raw)
    except ValueError:
        raise DecodeError(f"{ev.type}: invalid {TICKET_ATTRIBUTE} {raw!r}")
    if not 0 <= ticket < ticket_count:
        raise DecodeError(f"{ev.type}: {TICKET_ATTRIBUTE} {ticket} out of range")
    return ticket


def scan_outcomes(
    events: Iterable[LedgerEvent],
    address: str,
    denom: str,
    ticket_count: int,
) -> Dict[int, TicketResult]:
    """
    Find the definitive outcome of each ticket in a decoded event log.

    Events are walked in log order and the first definitive event for a
    ticket settles it: a lost event for `address` (and `denom`, when the
    event names one), or a winner event for `address` and `denom`. Tickets with no such event are absent from the
    result; they are still undecided, not lost.
    """
    found: Dict[int, TicketResult] = {}
    if not address:
        return found

    for ev in events:
        kind = RaffleEventKind.of(ev.type)
        if kind is None:
            continue

        attrs = ev.attributes
        if kind is RaffleEventKind.LOST:
            if attrs.get("participant") != address:
                continue
            # Older lost events carry no denom; when present it must match.
            if "denom" in attrs and attrs["denom"] != denom:
                continue
        elif attrs.get("winner") != address or attrs.get("denom") != denom:
            continue

        try:
            ticket = _ticket_of(ev, ticket_count)
            if ticket is None:
                log.debug("%s without %s in a %d-ticket batch; skipped",
                          ev.type, TICKET_ATTRIBUTE, ticket_count)
                continue
            if ticket in found:
                continue

            if kind is RaffleEventKind.LOST:
                found[ticket] = TicketResult(index=ticket, has_won=False)
            else:
                amount = parse_amount(attrs.get("amount"))
                found[ticket] = TicketResult(index=ticket, has_won=True, amount=amount)
        except DecodeError as e:
            log.warning("Skipping raffle event for %s: %s", denom, e)

    return found
