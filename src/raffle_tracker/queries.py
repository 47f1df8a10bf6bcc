from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .cache import TtlCache
from .coins import aggregate_burned_coins
from .epochs import EpochInfo, find_epoch, periodic_epoch_end_time
from .errors import DecodeError
from .ledger import LedgerClient
from .project_constants import (
    BURNED_CACHE_TTL,
    BURNED_KEY,
    BURNER_PARAMS_CACHE_TTL,
    BURNER_PARAMS_KEY,
    EPOCHS_CACHE_TTL,
    EPOCHS_KEY,
    HOUR_EPOCH,
    MODULE_ADDRESS_CACHE_TTL,
    MODULE_ADDRESS_KEY,
    RAFFLE_CACHE_TTL,
    RAFFLE_WINNERS_CACHE_TTL,
    RAFFLE_WINNERS_KEY,
    RAFFLES_KEY,
    WEEK_EPOCH,
)


class CachedQueries:
    """Read-through cache in front of the ledger's slow-changing read paths."""

    def __init__(self, ledger: LedgerClient, cache: TtlCache) -> None:
        self.ledger = ledger
        self.cache = cache

    async def raffles(self) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(RAFFLES_KEY, RAFFLE_CACHE_TTL, self.ledger.list_raffles)

    def invalidate_raffles(self) -> None:
        self.cache.remove(RAFFLES_KEY)

    async def raffle(self, denom: str) -> Dict[str, Any] | None:
        for raffle in await self.raffles():
            if raffle.get("denom") == denom:
                return raffle
        return None

    async def raffle_winners(self, denom: str) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(
            f"{RAFFLE_WINNERS_KEY}{denom}",
            RAFFLE_WINNERS_CACHE_TTL,
            lambda: self.ledger.list_raffle_winners(denom),
        )

    async def module_address(self, module: str) -> str:
        return await self.cache.get_or_fetch(
            f"{MODULE_ADDRESS_KEY}{module}",
            MODULE_ADDRESS_CACHE_TTL,
            lambda: self.ledger.get_module_address(module),
        )

    async def raffle_module_address(self) -> str:
        return await self.module_address("raffle")

    async def burned_coins(self) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(BURNED_KEY, BURNED_CACHE_TTL, self.ledger.get_all_burned_coins)

    async def burned_totals(self, denom: str | None = None) -> Dict[str, Decimal]:
        return aggregate_burned_coins(await self.burned_coins(), denom=denom)

    async def epochs(self) -> List[Dict[str, Any]]:
        return await self.cache.get_or_fetch(EPOCHS_KEY, EPOCHS_CACHE_TTL, self.ledger.get_epochs_info)

    async def current_epoch(self, identifier: str = HOUR_EPOCH) -> Optional[EpochInfo]:
        return find_epoch(await self.epochs(), identifier)

    async def burner_params(self) -> Dict[str, Any]:
        return await self.cache.get_or_fetch(
            BURNER_PARAMS_KEY, BURNER_PARAMS_CACHE_TTL, self.ledger.get_burner_params
        )

    async def next_burn_time(self) -> Optional[datetime]:
        """End of the current burning period; burns run every `periodic_burning_weeks` week epochs."""
        week = await self.current_epoch(WEEK_EPOCH)
        if week is None:
            return None
        params = await self.burner_params()
        try:
            period = int(params.get("periodic_burning_weeks") or 1)
        except (TypeError, ValueError):
            raise DecodeError(f"Invalid periodic_burning_weeks: {params.get('periodic_burning_weeks')!r}")
        return periodic_epoch_end_time(week, max(period, 1))
