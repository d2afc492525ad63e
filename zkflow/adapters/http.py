"""httpx clients for the salt, prover and faucet services."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..constants import DEFAULT_PROVER_TIMEOUT, DEFAULT_REQUEST_TIMEOUT
from ..errors import AdapterError
from ..models import ProofBundle, ProofRequest

logger = logging.getLogger(__name__)


def _error_detail(exc: httpx.HTTPError) -> str:
    """Prefer the remote ``message`` field over the transport message."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    return str(exc) or type(exc).__name__


class _JsonServiceClient:
    """Posts JSON to a single endpoint with an owned or shared ``AsyncClient``."""

    service_name = "service"

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def _post(self, payload: dict) -> Any:
        try:
            response = await self._get_client().post(
                self.url, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AdapterError(
                f"{self.service_name} request failed: {_error_detail(exc)}"
            ) from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise AdapterError(f"{self.service_name} returned invalid JSON") from exc

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class SaltServiceClient(_JsonServiceClient):
    service_name = "Salt"

    async def fetch_salt(self, jwt: str) -> str:
        body = await self._post({"jwt": jwt})
        salt = None
        if isinstance(body, dict):
            salt = body.get("salt")
            if salt is None and isinstance(body.get("data"), dict):
                salt = body["data"].get("salt")
        if salt is None:
            raise AdapterError("Salt service response did not contain a salt")
        return str(salt)


class ProverClient(_JsonServiceClient):
    service_name = "ZK proof"

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_PROVER_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(url, timeout=timeout, client=client)

    async def request_proof(self, request: ProofRequest) -> ProofBundle:
        body = await self._post(request.model_dump(by_alias=True))
        if not isinstance(body, dict):
            raise AdapterError("ZK proof response was not a JSON object")
        return ProofBundle.model_validate(body)


class FaucetClient(_JsonServiceClient):
    service_name = "Faucet"

    async def request_funds(self, address: str) -> None:
        await self._post({"FixedAmountRequest": {"recipient": address}})
        logger.info(f"Faucet funding requested for {address}")
