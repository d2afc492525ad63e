"""Sui JSON-RPC client implementing the chain adapter."""

from __future__ import annotations

import itertools
import logging
from typing import Any, List, Optional

import httpx

from ..constants import (
    DEFAULT_GAS_BUDGET,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TRANSFER_RECIPIENT,
    MIST_PER_SUI,
)
from ..errors import AdapterError
from ..models import TransactionOptions

logger = logging.getLogger(__name__)

SUI_COIN_TYPE = "0x2::sui::SUI"


class SuiJsonRpcClient:
    """Minimal JSON-RPC client for epoch, balance and transaction calls."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        gas_budget: int = DEFAULT_GAS_BUDGET,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.gas_budget = gas_budget
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def call(self, method: str, params: List[Any]) -> Any:
        """Invoke ``method`` and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._get_client().post(
                self.url, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise AdapterError(f"RPC {method} failed: {exc}") from exc
        except ValueError as exc:
            raise AdapterError(f"RPC {method} returned invalid JSON") from exc

        if "error" in body:
            error = body["error"] or {}
            raise AdapterError(f"RPC {method} failed: {error.get('message', error)}")
        return body.get("result")

    async def get_current_epoch(self) -> int:
        state = await self.call("suix_getLatestSuiSystemState", [])
        try:
            return int(state["epoch"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AdapterError(f"Unexpected system state response: {state!r}") from exc

    async def get_balance(self, address: str) -> str:
        result = await self.call("suix_getBalance", [address, SUI_COIN_TYPE])
        try:
            return str(result["totalBalance"])
        except (KeyError, TypeError) as exc:
            raise AdapterError(f"Unexpected balance response: {result!r}") from exc

    async def build_transaction(self, sender: str, options: TransactionOptions) -> str:
        if options.transaction_bytes:
            return options.transaction_bytes

        if options.recipient and options.amount:
            recipient, amount = options.recipient, options.amount
        else:
            recipient, amount = DEFAULT_TRANSFER_RECIPIENT, MIST_PER_SUI

        coins = await self.call("suix_getCoins", [sender, SUI_COIN_TYPE, None, None])
        coin_ids = [coin["coinObjectId"] for coin in (coins or {}).get("data", [])]
        if not coin_ids:
            raise AdapterError(f"No coins available for {sender}")

        result = await self.call(
            "unsafe_paySui",
            [sender, coin_ids, [recipient], [str(amount)], str(self.gas_budget)],
        )
        logger.debug(f"Built transfer of {amount} to {recipient} from {sender}")
        return result["txBytes"]

    async def execute_transaction(self, tx_bytes: str, signature: str) -> str:
        result = await self.call(
            "sui_executeTransactionBlock",
            [tx_bytes, [signature], {"showEffects": True}, "WaitForLocalExecution"],
        )
        return result["digest"]

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
