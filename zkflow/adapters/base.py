"""Contracts for the external services the workflow calls."""

from __future__ import annotations

from typing import Protocol

from ..models import ProofBundle, ProofRequest, TransactionOptions


class ChainAdapter(Protocol):
    """Blockchain RPC operations used by the workflow."""

    async def get_current_epoch(self) -> int:
        """Return the chain's current epoch."""

    async def get_balance(self, address: str) -> str:
        """Return the total balance of ``address`` in base units."""

    async def build_transaction(self, sender: str, options: TransactionOptions) -> str:
        """Return base64 transaction bytes to be signed by ``sender``."""

    async def execute_transaction(self, tx_bytes: str, signature: str) -> str:
        """Submit signed transaction bytes and return the digest."""


class SaltService(Protocol):
    async def fetch_salt(self, jwt: str) -> str:
        """Return the user salt for the identity token ``jwt``."""


class ProverService(Protocol):
    async def request_proof(self, request: ProofRequest) -> ProofBundle:
        """Return the proof bundle for ``request``."""


class FaucetService(Protocol):
    async def request_funds(self, address: str) -> None:
        """Ask the faucet to fund ``address``."""
