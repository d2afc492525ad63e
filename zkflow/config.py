from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from .constants import (
    DEFAULT_FAUCET_ENDPOINT,
    DEFAULT_GAS_BUDGET,
    DEFAULT_NETWORK,
    DEFAULT_PROVER_ENDPOINT,
    DEFAULT_PROVER_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SALT_SERVICE_URL,
    DEFAULT_STORAGE_PREFIX,
    NETWORK_URLS,
)
from .errors import ConfigurationError

ProviderName = Literal["google", "facebook", "twitch", "apple", "custom"]


class _ConfigModel(BaseModel):
    # Accept both ``client_id`` and ``clientId`` style keys.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StorageConfig(_ConfigModel):
    """Store backends for durable and session-scoped records."""

    durable_url: str = "sqlite://zkflow.db"
    session_url: str = "sqlite://zkflow-session.db"
    session_ttl: Optional[int] = None


class ZkFlowConfig(_ConfigModel):
    """Top-level configuration model."""

    client_id: str = ""
    redirect_uri: str = ""
    network: str = DEFAULT_NETWORK
    prover_endpoint: str = DEFAULT_PROVER_ENDPOINT
    faucet_endpoint: str = DEFAULT_FAUCET_ENDPOINT
    storage_prefix: str = DEFAULT_STORAGE_PREFIX
    salt_service_url: str = DEFAULT_SALT_SERVICE_URL
    debug: bool = False

    provider: ProviderName = "google"
    oauth_auth_url: Optional[str] = None
    oauth_scope: Optional[str] = None
    storage: StorageConfig = StorageConfig()
    prover_timeout: float = DEFAULT_PROVER_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    gas_budget: int = DEFAULT_GAS_BUDGET
    single_flight: bool = False
    auto_advance: bool = True
    crypto: Optional[str] = None

    @property
    def rpc_url(self) -> str:
        """Resolve a known network name to its RPC URL."""
        return NETWORK_URLS.get(self.network, self.network)

    def validate_required(self) -> None:
        """Raise ``ConfigurationError`` when a mandatory option is missing."""
        if not self.client_id:
            raise ConfigurationError("clientId is required")
        if not self.redirect_uri:
            raise ConfigurationError("redirectUri is required")


_ENV_OVERRIDES = {
    "ZKFLOW_CLIENT_ID": "client_id",
    "ZKFLOW_REDIRECT_URI": "redirect_uri",
    "ZKFLOW_NETWORK": "network",
}


def load_config(path: Optional[str] = None) -> ZkFlowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ZKFLOW_CONFIG env
            variable or 'zkflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("ZKFLOW_CONFIG", "zkflow.yaml")
    data: dict = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    for env_name, field in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data.pop(to_camel(field), None)
            data[field] = value

    try:
        return ZkFlowConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc
