"""zkflow: resumable zkLogin authentication workflow."""

from .config import ZkFlowConfig, load_config
from .crypto import Ed25519KeyPair, ZkLoginCrypto, load_crypto
from .errors import (
    AdapterError,
    ConfigurationError,
    DecodeError,
    ErrorCode,
    PreconditionError,
    ZkFlowError,
)
from .events import EventBus, WorkflowEvent
from .models import (
    DerivedAddress,
    EphemeralKeyMaterial,
    IdentityToken,
    ProofBundle,
    TransactionOptions,
    UserSalt,
    WorkflowState,
)
from .storage import get_store
from .transitions import WorkflowStep
from .workflow import ZkLoginWorkflow, create_workflow

__version__ = "0.1.0"
__all__ = [
    "ZkFlowConfig",
    "load_config",
    "Ed25519KeyPair",
    "ZkLoginCrypto",
    "load_crypto",
    "AdapterError",
    "ConfigurationError",
    "DecodeError",
    "ErrorCode",
    "PreconditionError",
    "ZkFlowError",
    "EventBus",
    "WorkflowEvent",
    "DerivedAddress",
    "EphemeralKeyMaterial",
    "IdentityToken",
    "ProofBundle",
    "TransactionOptions",
    "UserSalt",
    "WorkflowState",
    "get_store",
    "WorkflowStep",
    "ZkLoginWorkflow",
    "create_workflow",
]
