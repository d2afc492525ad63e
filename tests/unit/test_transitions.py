from zkflow.crypto import Ed25519KeyPair
from zkflow.errors import ErrorCode
from zkflow.models import (
    DerivedAddress,
    EphemeralKeyMaterial,
    IdentityToken,
    ProofBundle,
    UserSalt,
    WorkflowState,
)
from zkflow.transitions import (
    ERROR_CODES,
    WorkflowStep,
    missing_prerequisites,
    next_step,
    restored_step,
)


def _state(*records: str) -> WorkflowState:
    values = {
        "ephemeral_key_material": EphemeralKeyMaterial(
            key_pair=Ed25519KeyPair.generate(), max_epoch=10, randomness="1"
        ),
        "jwt": IdentityToken(raw_token="t"),
        "user_salt": UserSalt(salt="1"),
        "zklogin_address": DerivedAddress(address="0x1", address_seed="2"),
        "proof": ProofBundle(),
    }
    return WorkflowState(**{name: values[name] for name in records})


def test_chain_of_automatic_steps():
    assert next_step(WorkflowStep.TOKEN) == WorkflowStep.SALT
    assert next_step(WorkflowStep.SALT) == WorkflowStep.ADDRESS
    assert next_step(WorkflowStep.ADDRESS) == WorkflowStep.PROOF
    assert next_step(WorkflowStep.PROOF) is None
    assert next_step(WorkflowStep.KEY_MATERIAL) is None


def test_prerequisites():
    empty = WorkflowState()
    assert missing_prerequisites(empty, WorkflowStep.KEY_MATERIAL) == []
    assert missing_prerequisites(empty, WorkflowStep.TOKEN) == []
    assert missing_prerequisites(empty, WorkflowStep.ADDRESS) == ["jwt", "user_salt"]
    assert missing_prerequisites(_state("jwt"), WorkflowStep.SALT) == []
    assert missing_prerequisites(
        _state("ephemeral_key_material", "proof"), WorkflowStep.TRANSACTION
    ) == ["zklogin_address"]


def test_restored_step_credits_supported_records():
    assert restored_step(WorkflowState()) == 0
    assert restored_step(_state("ephemeral_key_material")) == 1
    assert restored_step(_state("jwt")) == 3
    assert restored_step(_state("user_salt")) == 0
    assert restored_step(_state("zklogin_address")) == 0
    assert restored_step(_state("jwt", "user_salt")) == 4
    assert restored_step(_state("jwt", "zklogin_address")) == 3
    assert restored_step(_state("jwt", "user_salt", "zklogin_address")) == 5
    assert restored_step(
        _state("ephemeral_key_material", "jwt", "user_salt", "proof")
    ) == 4
    assert restored_step(
        _state("ephemeral_key_material", "jwt", "user_salt", "zklogin_address", "proof")
    ) == 6


def test_every_step_has_an_error_code():
    for step in WorkflowStep:
        if step is WorkflowStep.UNINITIALIZED:
            continue
        assert isinstance(ERROR_CODES[step], ErrorCode)
