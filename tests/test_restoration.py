"""Resuming a workflow from previously persisted records."""

import jwt
import pytest

from fakes import PREFIX, SIGNING_SECRET, Harness, callback_url, make_jwt
from zkflow.constants import StorageKeys
from zkflow.models import DerivedAddress, UserSalt

SALT_KEY = PREFIX + StorageKeys.USER_SALT
ADDRESS_KEY = PREFIX + StorageKeys.ZKLOGIN_ADDRESS
TOKEN_KEY = PREFIX + StorageKeys.JWT_TOKEN
PROOF_KEY = PREFIX + StorageKeys.ZK_PROOF
SECRET_KEY = PREFIX + StorageKeys.EPHEMERAL_KEYPAIR


@pytest.mark.asyncio
async def test_restart_resumes_ready_workflow(harness: Harness):
    first = await harness.ready_workflow()
    before = first.get_state()
    harness.recorder.events.clear()

    second = await harness.workflow()
    after = second.get_state()

    assert after.current_step == 6
    assert after.is_ready
    assert after.jwt.raw_token == before.jwt.raw_token
    assert after.user_salt.salt == before.user_salt.salt
    assert after.zklogin_address.address == before.zklogin_address.address
    assert after.proof.to_inputs() == before.proof.to_inputs()
    assert (
        after.ephemeral_key_material.key_pair.secret_key()
        == before.ephemeral_key_material.key_pair.secret_key()
    )
    assert after.ephemeral_key_material.max_epoch == before.ephemeral_key_material.max_epoch
    assert len(harness.salt_service.calls) == 1
    assert len(harness.prover.requests) == 1
    assert harness.recorder.events == []


@pytest.mark.asyncio
async def test_restored_key_material_gets_fresh_nonce_on_redirect(harness: Harness):
    first = await harness.workflow()
    original_nonce = first.get_state().ephemeral_key_material.nonce

    second = await harness.workflow()
    assert second.get_state().ephemeral_key_material.nonce == ""

    url = second.redirect_to_provider()
    # same key pair, epoch and randomness give the same commitment
    assert f"nonce={original_nonce}" in url
    assert second.get_state().ephemeral_key_material.nonce == original_nonce


@pytest.mark.asyncio
async def test_restored_workflow_can_transact(harness: Harness):
    await harness.ready_workflow()

    restored = await harness.workflow()
    digest = await restored.execute_transaction()

    assert digest == "digest-1"


@pytest.mark.asyncio
async def test_corrupted_token_is_discarded(harness: Harness):
    await harness.ready_workflow()
    harness.session[TOKEN_KEY] = "not-a-jwt"

    restored = await harness.workflow()
    state = restored.get_state()

    assert TOKEN_KEY not in harness.session
    assert state.jwt is None
    assert state.current_step == 1
    assert not state.is_ready
    # the other records are still loaded, they just earn no progress
    assert state.user_salt is not None
    assert state.zklogin_address is not None


@pytest.mark.asyncio
async def test_salt_alone_earns_no_progress(harness: Harness):
    harness.durable[SALT_KEY] = UserSalt(salt="42").to_json()

    workflow = await harness.workflow()

    assert workflow.current_step == 1
    assert workflow.get_state().user_salt.salt == "42"


@pytest.mark.asyncio
async def test_address_alone_earns_no_progress(harness: Harness):
    harness.durable[ADDRESS_KEY] = DerivedAddress(address="0x1", address_seed="7").to_json()

    workflow = await harness.workflow()

    assert workflow.current_step == 1
    assert workflow.get_state().zklogin_address.address == "0x1"


@pytest.mark.asyncio
async def test_token_and_salt_resume_at_salt_step(harness: Harness):
    first = await harness.workflow(auto_advance=False)
    await first.handle_callback(callback_url(make_jwt()))
    await first.derive_salt()

    second = await harness.workflow()

    assert second.current_step == 4
    assert not second.is_ready
    assert len(harness.salt_service.calls) == 1


@pytest.mark.asyncio
async def test_proof_without_address_earns_no_credit(harness: Harness):
    await harness.ready_workflow()
    del harness.durable[ADDRESS_KEY]

    restored = await harness.workflow()

    assert restored.current_step == 4
    assert restored.get_state().proof is not None
    assert not restored.is_ready


@pytest.mark.parametrize("key, store", [(SALT_KEY, "durable"), (PROOF_KEY, "session")])
@pytest.mark.asyncio
async def test_unreadable_record_is_removed(harness: Harness, key, store):
    await harness.ready_workflow()
    getattr(harness, store)[key] = "{not json"

    restored = await harness.workflow()

    assert key not in getattr(harness, store)
    assert not restored.is_ready
    assert restored.get_state().last_error is None


@pytest.mark.asyncio
async def test_partial_key_material_is_regenerated(harness: Harness):
    harness.session[SECRET_KEY] = "c2VjcmV0"

    workflow = await harness.workflow()
    material = workflow.get_state().ephemeral_key_material

    assert material is not None
    assert material.nonce
    assert harness.session[SECRET_KEY] == material.key_pair.secret_key()
    assert harness.session[PREFIX + StorageKeys.MAX_EPOCH] == "110"
    assert harness.chain.epoch_calls == 1


@pytest.mark.asyncio
async def test_undecodable_secret_key_is_regenerated(harness: Harness):
    await harness.workflow()
    harness.session[SECRET_KEY] = "!!not base64!!"

    workflow = await harness.workflow()

    assert workflow.get_state().ephemeral_key_material is not None
    assert harness.session[SECRET_KEY] != "!!not base64!!"
    assert harness.chain.epoch_calls == 2


@pytest.mark.asyncio
async def test_expired_token_is_restored(harness: Harness):
    first = await harness.workflow(auto_advance=False)
    await first.handle_callback(callback_url(make_jwt(exp_in=-60)))

    second = await harness.workflow()
    token = second.get_state().jwt

    assert token is not None
    assert not token.is_valid
    assert second.current_step == 3


@pytest.mark.asyncio
async def test_restore_publishes_no_errors(harness: Harness):
    await harness.ready_workflow()
    harness.session[TOKEN_KEY] = "not-a-jwt"
    harness.durable[SALT_KEY] = "[]"
    harness.session[SECRET_KEY] = "!!"
    harness.recorder.events.clear()

    workflow = await harness.workflow()

    assert "error" not in harness.recorder.names()
    assert harness.recorder.names() == ["keypair:generated", "step:changed"]
    assert workflow.get_state().last_error is None


@pytest.mark.parametrize("exp", [1e300, 10**20, float("inf")])
@pytest.mark.asyncio
async def test_token_with_unusable_exp_is_discarded(harness: Harness, exp):
    await harness.workflow()
    harness.session[TOKEN_KEY] = jwt.encode(
        {"sub": "u", "aud": "c1", "exp": exp}, SIGNING_SECRET, algorithm="HS256"
    )

    restored = await harness.workflow()

    assert TOKEN_KEY not in harness.session
    assert restored.get_state().jwt is None
    assert restored.current_step == 1
    assert restored.get_state().last_error is None
