"""Error taxonomy for the zkLogin workflow."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Stable machine-readable codes, one per workflow operation."""

    KEYPAIR_GENERATION_FAILED = "keypair-generation-failed"
    OAUTH_REDIRECT_FAILED = "oauth-redirect-failed"
    OAUTH_CALLBACK_FAILED = "oauth-callback-failed"
    SALT_GENERATION_FAILED = "salt-generation-failed"
    ADDRESS_GENERATION_FAILED = "address-generation-failed"
    ZK_PROOF_FAILED = "zk-proof-failed"
    TRANSACTION_EXECUTION_FAILED = "transaction-execution-failed"
    FAUCET_REQUEST_FAILED = "faucet-request-failed"


class ZkFlowError(Exception):
    """Base error. ``code`` and ``step`` are set once a step operation fails."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        step: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.step = step

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ZkFlowError):
    """Invalid or incomplete configuration."""


class PreconditionError(ZkFlowError):
    """A step was invoked before the records it depends on exist."""


class AdapterError(ZkFlowError):
    """An external service call failed, timed out or was rejected."""


class DecodeError(ZkFlowError):
    """A token or persisted record could not be decoded."""
