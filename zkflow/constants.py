"""Shared constants for zkflow."""

from __future__ import annotations

NETWORK_URLS = {
    "mainnet": "https://rpc-mainnet.onelabs.cc:443",
    "testnet": "https://rpc-testnet.onelabs.cc:443",
    "devnet": "https://rpc-testnet.onelabs.cc:443",
}

DEFAULT_NETWORK = "devnet"
DEFAULT_PROVER_ENDPOINT = "https://zkprover.deltax.online/v1"
DEFAULT_FAUCET_ENDPOINT = "https://faucet-testnet.onelabs.cc/gas"
DEFAULT_STORAGE_PREFIX = "zklogin_plus_"
DEFAULT_SALT_SERVICE_URL = "https://salt.deltax.online/api/userSalt/Google"

DEFAULT_PROVER_TIMEOUT = 30.0
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_GAS_BUDGET = 10_000_000

# Key material stays valid for this many epochs past the current one.
MAX_EPOCH_WINDOW = 10

MIST_PER_SUI = 1_000_000_000
DEFAULT_TRANSFER_RECIPIENT = (
    "0x23bf8c3d7d2d55f8b78a72e3ee2d53a849c9db976ac5e8142e3ee12be4cf81d6"
)

KEY_CLAIM_NAME = "sub"


class StorageKeys:
    """Logical record names, stored under the configured prefix."""

    EPHEMERAL_KEYPAIR = "ephemeral_keypair"
    MAX_EPOCH = "max_epoch"
    RANDOMNESS = "randomness"
    JWT_TOKEN = "jwt_token"
    ZK_PROOF = "zk_proof"
    USER_SALT = "user_salt"
    ZKLOGIN_ADDRESS = "zklogin_address"
