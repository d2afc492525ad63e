"""Data models for the zkLogin workflow state and its persisted records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .crypto import Ed25519KeyPair


class _Record(BaseModel):
    """Records persist as JSON with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str):
        return cls.model_validate_json(data)


class EphemeralKeyMaterial(BaseModel):
    """Short-lived key pair plus the values bound into the OAuth nonce."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key_pair: Ed25519KeyPair
    max_epoch: int
    randomness: str
    nonce: str = ""


class IdentityToken(BaseModel):
    """Decoded (not verified) identity token from the OAuth provider."""

    raw_token: str
    claims: Dict[str, Any] = Field(default_factory=dict)
    is_valid: bool = False
    expires_at: Optional[datetime] = None


class UserSalt(_Record):
    salt: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DerivedAddress(_Record):
    address: str
    address_seed: str
    balance: Optional[str] = None


class ProofBundle(_Record):
    """Opaque proof payload returned by the prover.

    Only the commonly present fields are named; anything else the prover
    returns is preserved as extra data.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    proof_points: Optional[Dict[str, Any]] = None
    iss_base64_details: Optional[Dict[str, Any]] = None
    header_base64: Optional[str] = None

    def to_inputs(self) -> Dict[str, Any]:
        """Return the payload as sent by the prover."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ProofRequest(_Record):
    """Body posted to the prover."""

    jwt: str
    extended_ephemeral_public_key: str
    max_epoch: int
    jwt_randomness: str
    salt: str
    key_claim_name: str = "sub"


class TransactionOptions(BaseModel):
    """What to submit from the derived address.

    ``transaction_bytes`` (base64, already built) takes precedence over a
    ``recipient``/``amount`` transfer. With neither, a default transfer is made.
    """

    recipient: Optional[str] = None
    amount: Optional[int] = None
    transaction_bytes: Optional[str] = None


class OAuthCallback(BaseModel):
    id_token: Optional[str] = None
    access_token: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None


class WorkflowState(BaseModel):
    """The single mutable aggregate owned by a workflow instance."""

    current_step: int = 0
    is_ready: bool = False
    last_error: Optional[str] = None
    ephemeral_key_material: Optional[EphemeralKeyMaterial] = None
    jwt: Optional[IdentityToken] = None
    user_salt: Optional[UserSalt] = None
    zklogin_address: Optional[DerivedAddress] = None
    proof: Optional[ProofBundle] = None

    def snapshot(self) -> "WorkflowState":
        """Copy the state together with its records.

        The key pair object itself is shared; it is never mutated.
        """
        update: Dict[str, Any] = {}
        if self.ephemeral_key_material is not None:
            update["ephemeral_key_material"] = self.ephemeral_key_material.model_copy()
        for name in ("jwt", "user_salt", "zklogin_address", "proof"):
            record = getattr(self, name)
            if record is not None:
                update[name] = record.model_copy(deep=True)
        return self.model_copy(update=update)
