from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from .errors import DecodeError
from .project_constants import DAY_EPOCH, HOUR_EPOCH, WEEK_EPOCH

_DURATIONS = {
    HOUR_EPOCH: timedelta(hours=1),
    DAY_EPOCH: timedelta(days=1),
    WEEK_EPOCH: timedelta(weeks=1),
}

# RFC 3339 with up to nanosecond fractions, as the chain renders timestamps
_TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$")


@dataclass(frozen=True)
class EpochInfo:
    identifier: str
    current_epoch: int
    current_epoch_start_time: datetime

    @property
    def duration(self) -> timedelta:
        return epoch_duration(self.identifier)


def epoch_duration(identifier: str) -> timedelta:
    # Unknown identifiers tick hourly.
    return _DURATIONS.get(identifier, _DURATIONS[HOUR_EPOCH])


def parse_timestamp(raw: str) -> datetime:
    m = _TIMESTAMP.match(raw.strip()) if isinstance(raw, str) else None
    if m is None:
        raise DecodeError(f"Invalid timestamp: {raw!r}")
    base, fraction, zone = m.groups()
    micros = (fraction or "0")[:6].ljust(6, "0")
    zone = "+00:00" if zone == "Z" else zone
    return datetime.fromisoformat(f"{base}.{micros}{zone}").astimezone(timezone.utc)


def parse_epoch_info(raw: Dict[str, Any]) -> EpochInfo:
    try:
        return EpochInfo(
            identifier=str(raw["identifier"]),
            current_epoch=int(raw["current_epoch"]),
            current_epoch_start_time=parse_timestamp(raw["current_epoch_start_time"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Invalid epoch info {raw!r}: {e}")


def find_epoch(epochs: Iterable[Dict[str, Any]], identifier: str) -> Optional[EpochInfo]:
    for raw in epochs:
        if raw.get("identifier") == identifier:
            return parse_epoch_info(raw)
    return None


def periodic_epoch_end_time(epoch: EpochInfo, mod: int = 1) -> datetime:
    """
    End of the current epoch, or of the next epoch whose number is a multiple
    of `mod` (mod=4 on the week epoch: the end of the current 4-week period).
    """
    if mod < 1:
        raise ValueError("mod must be positive")
    remaining = mod - epoch.current_epoch % mod
    if remaining == mod:
        remaining = 0
    return epoch.current_epoch_start_time + epoch.duration * (1 + remaining)


def raffle_end_time(end_at: Any, hour_epoch: EpochInfo) -> datetime:
    """Wall-clock time at which a raffle ending at hour epoch `end_at` closes."""
    try:
        target = int(end_at)
    except (TypeError, ValueError):
        raise DecodeError(f"Invalid raffle end_at: {end_at!r}")
    return hour_epoch.current_epoch_start_time + hour_epoch.duration * (target - hour_epoch.current_epoch)


def format_time_remaining(end_at: Any, current_epoch: int) -> str:
    """Time left until hour epoch `end_at`, e.g. "2d 5h"; "ending" within the last hour."""
    try:
        hours = int(end_at) - int(current_epoch)
    except (TypeError, ValueError):
        raise DecodeError(f"Invalid raffle end_at: {end_at!r}")
    if hours <= 0:
        return "ending"
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h" if hours else f"{days}d"
    return f"{hours}h"
