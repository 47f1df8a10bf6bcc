from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx

from .errors import NetworkError, RaffleTrackerError
from .models import SubmittedContribution
from .project_constants import (
    ALL_BURNED_COINS_PATH,
    BURNER_PARAMS_PATH,
    EPOCH_INFOS_PATH,
    MODULE_ACCOUNT_PATH,
    RAFFLE_WINNERS_PATH,
    RAFFLES_PATH,
    TX_PATH,
)


class BlockResultsSource(Protocol):
    async def get_block_results(self, height: int) -> Dict[str, Any]: ...


class ContributionSubmitter(Protocol):
    """Signs and broadcasts a raffle contribution; provided by the wallet layer."""

    async def submit_contribution(
        self, denom: str, ticket_count: int
    ) -> SubmittedContribution: ...


class LedgerClient:
    """Read-only access to a chain node: CometBFT RPC plus Cosmos REST."""

    def __init__(
        self,
        rpc_url: str,
        rest_url: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.rest_url = rest_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NetworkError(f"RPC {payload.get('method')} failed: {e}") from e
        if "error" in data:
            raise NetworkError(f"RPC error: {data['error']}")
        return data

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = await self.client.get(f"{self.rest_url}{path}", params=params)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NetworkError(f"GET {path} failed: {e}") from e

    async def get_block_results(self, height: int) -> Dict[str, Any]:
        """
        Returns the `result` object of CometBFT `block_results`.
        Fails with NetworkError while the height is not committed yet.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "block_results",
            "params": {"height": str(height)},
        }
        data = await self._post(payload)
        result = data.get("result")
        if not isinstance(result, dict):
            raise NetworkError(f"Height {height}: block_results returned no result.")
        return result

    async def list_raffles(self) -> List[Dict[str, Any]]:
        data = await self._get(RAFFLES_PATH)
        return list(data.get("list") or [])

    async def list_raffle_winners(self, denom: str) -> List[Dict[str, Any]]:
        data = await self._get(RAFFLE_WINNERS_PATH, params={"denom": denom})
        return list(data.get("list") or [])

    async def get_all_burned_coins(self) -> List[Dict[str, Any]]:
        data = await self._get(ALL_BURNED_COINS_PATH, params={"pagination.reverse": "true"})
        return list(data.get("burnedCoins") or data.get("burned_coins") or [])

    async def get_burner_params(self) -> Dict[str, Any]:
        data = await self._get(BURNER_PARAMS_PATH)
        return dict(data.get("params") or {})

    async def get_epochs_info(self) -> List[Dict[str, Any]]:
        data = await self._get(EPOCH_INFOS_PATH)
        return list(data.get("epochs") or [])

    async def get_module_address(self, module: str) -> str:
        data = await self._get(f"{MODULE_ACCOUNT_PATH}/{module}")
        account = data.get("account") or {}
        address = (account.get("base_account") or {}).get("address")
        if not address:
            raise NetworkError(f"Module account {module!r} has no address.")
        return address

    async def get_tx_height(self, tx_hash: str) -> int:
        data = await self._get(f"{TX_PATH}/{tx_hash}")
        tx_response = data.get("tx_response") or {}
        height = int(tx_response.get("height") or 0)
        if height <= 0:
            raise NetworkError(f"Transaction {tx_hash} is not included in a block yet.")
        if int(tx_response.get("code") or 0) != 0:
            raise RaffleTrackerError(
                f"Transaction {tx_hash} failed on chain: {tx_response.get('raw_log')}"
            )
        return height
