from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict, Iterable, List

from .errors import DecodeError
from .project_constants import DEFAULT_DECIMALS

log = logging.getLogger(__name__)

# Same shape the Cosmos SDK accepts: integer or decimal amount glued to a denom.
_COIN_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?)([a-zA-Z][a-zA-Z0-9/:._-]{2,127})$")

# Plenty for 256-bit integer amounts plus decimals.
_PRECISION = 120


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: Decimal


def parse_amount(raw: Any) -> Decimal:
    """Parse a base-unit amount (string or int) into an exact Decimal."""
    if isinstance(raw, bool) or raw is None:
        raise DecodeError(f"Invalid amount: {raw!r}")
    if isinstance(raw, float):
        # Floats already lost precision somewhere upstream.
        raise DecodeError(f"Refusing float amount: {raw!r}")
    try:
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise DecodeError(f"Invalid amount: {raw!r}")
    if not value.is_finite() or value < 0:
        raise DecodeError(f"Invalid amount: {raw!r}")
    return value


def parse_coins(raw: str) -> List[Coin]:
    """
    Parse a comma separated coin list, e.g. "1000ubze,25ibc/ABCD".

    An empty string is an empty list. Any malformed part raises DecodeError
    for the whole string, matching how the chain itself validates coins.
    """
    raw = (raw or "").strip()
    if not raw:
        return []

    out: List[Coin] = []
    for part in raw.split(","):
        part = part.strip()
        m = _COIN_RE.match(part)
        if not m:
            raise DecodeError(f"Invalid coin {part!r} in {raw!r}")
        out.append(Coin(denom=m.group(2), amount=parse_amount(m.group(1))))
    return out


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    total = Decimal(0)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        for amount in amounts:
            total += amount
    return total


def aggregate_coins(coins: Iterable[Coin]) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = defaultdict(Decimal)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        for coin in coins:
            totals[coin.denom] += coin.amount
    return dict(totals)


def aggregate_burned_coins(
    burned_coins: Iterable[Dict[str, Any]],
    denom: str | None = None,
) -> Dict[str, Decimal]:
    """
    Sum every burn entry ({"burned": "<coins>", "height": "..."}) per denom.

    Zero amounts are dropped, unparsable entries are skipped and logged,
    and `denom` optionally narrows the result to a single denomination.
    """
    coins: List[Coin] = []
    for entry in burned_coins:
        try:
            parsed = parse_coins(entry.get("burned", ""))
        except DecodeError as e:
            log.warning("Skipping burn at height %s: %s", entry.get("height"), e)
            continue

        for coin in parsed:
            if coin.amount == 0:
                continue
            if denom and coin.denom != denom:
                continue
            coins.append(coin)

    return aggregate_coins(coins)


def to_tokens(raw_amount: Decimal | int | str, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Convert base units (e.g. ubze) into display units without rounding."""
    amount = raw_amount if isinstance(raw_amount, Decimal) else parse_amount(raw_amount)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return amount.scaleb(-decimals)


def format_tokens(amount: Decimal) -> str:
    """Plain notation, trailing zeros stripped ("1.5", "100")."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        if amount == amount.to_integral_value():
            return format(amount.quantize(Decimal(1)), "f")
        return format(amount.normalize(), "f")
