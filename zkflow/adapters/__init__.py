"""External service adapters."""

from __future__ import annotations

from .base import ChainAdapter, FaucetService, ProverService, SaltService
from .chain import SuiJsonRpcClient
from .http import FaucetClient, ProverClient, SaltServiceClient
from .oauth import OAUTH_AUTH_URLS, OAuthProvider, parse_callback, validate_callback

__all__ = [
    "ChainAdapter",
    "FaucetService",
    "ProverService",
    "SaltService",
    "SuiJsonRpcClient",
    "FaucetClient",
    "ProverClient",
    "SaltServiceClient",
    "OAUTH_AUTH_URLS",
    "OAuthProvider",
    "parse_callback",
    "validate_callback",
]
