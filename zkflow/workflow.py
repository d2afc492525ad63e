"""zkLogin workflow orchestrator."""

from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterator, List, Optional, Type, TypeVar

from pydantic import ValidationError

from .adapters import (
    ChainAdapter,
    FaucetClient,
    FaucetService,
    OAuthProvider,
    ProverClient,
    ProverService,
    SaltService,
    SaltServiceClient,
    SuiJsonRpcClient,
    parse_callback,
    validate_callback,
)
from .config import ZkFlowConfig
from .constants import KEY_CLAIM_NAME, MAX_EPOCH_WINDOW, StorageKeys
from .crypto import ZkLoginCrypto, load_crypto
from .errors import (
    AdapterError,
    ConfigurationError,
    DecodeError,
    ErrorCode,
    PreconditionError,
    ZkFlowError,
)
from .events import EventBus, EventName, Handler, WorkflowEvent
from .models import (
    DerivedAddress,
    EphemeralKeyMaterial,
    IdentityToken,
    ProofBundle,
    ProofRequest,
    TransactionOptions,
    UserSalt,
    WorkflowState,
)
from .storage import KeyValueStore, get_store
from .tokens import decode_identity_token, primary_audience
from .transitions import (
    ERROR_CODES,
    RECORD_LABELS,
    STEP_RECORDS,
    WorkflowStep,
    missing_prerequisites,
    missing_records,
    next_step,
    restored_step,
)
from .utils.singleflight import SingleFlight

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", UserSalt, DerivedAddress, ProofBundle)
Navigator = Callable[[str], Any]

STEP_ACTIONS: Dict[WorkflowStep, str] = {
    WorkflowStep.KEY_MATERIAL: "generate ephemeral key pair",
    WorkflowStep.OAUTH_REDIRECT: "redirect to OAuth",
    WorkflowStep.TOKEN: "handle OAuth callback",
    WorkflowStep.SALT: "generate salt",
    WorkflowStep.ADDRESS: "generate address",
    WorkflowStep.PROOF: "get ZK proof",
    WorkflowStep.TRANSACTION: "execute transaction",
}


def calculate_max_epoch(current_epoch: int) -> int:
    """Last epoch for which freshly generated key material stays valid."""
    return current_epoch + MAX_EPOCH_WINDOW


class ZkLoginWorkflow:
    """Persisted, resumable zkLogin state machine.

    Each step operation checks its preconditions, performs one external call,
    persists its record, updates the in-memory state and publishes events.
    Steps 3 to 6 chain into each other on success (see
    :data:`zkflow.transitions.NEXT_STEP`). Session-scoped records (key
    material, token, proof) and durable records (salt, address) are restored
    by :meth:`restore`; use :meth:`create` to construct and restore in one go.

    Concurrent invocations of the same step are not serialized unless
    ``single_flight`` is enabled in the configuration; otherwise both run and
    the last write wins.
    """

    def __init__(
        self,
        config: ZkFlowConfig,
        crypto: Optional[ZkLoginCrypto] = None,
        *,
        durable_store: Optional[KeyValueStore] = None,
        session_store: Optional[KeyValueStore] = None,
        chain: Optional[ChainAdapter] = None,
        salt_service: Optional[SaltService] = None,
        prover: Optional[ProverService] = None,
        faucet: Optional[FaucetService] = None,
        events: Optional[EventBus] = None,
        navigator: Optional[Navigator] = None,
    ) -> None:
        config.validate_required()
        self._config = config
        if config.debug:
            logging.getLogger("zkflow").setLevel(logging.DEBUG)

        if crypto is None:
            if not config.crypto:
                raise ConfigurationError("No zkLogin crypto implementation configured")
            crypto = load_crypto(config.crypto)
        self._crypto = crypto

        prefix = config.storage_prefix
        self._owned_stores: List[KeyValueStore] = []
        if durable_store is None:
            durable_store = get_store(config.storage.durable_url, prefix)
            self._owned_stores.append(durable_store)
        if session_store is None:
            session_store = get_store(
                config.storage.session_url, prefix, ttl=config.storage.session_ttl
            )
            self._owned_stores.append(session_store)
        self._durable = durable_store
        self._session = session_store

        self._chain = chain or SuiJsonRpcClient(
            config.rpc_url, timeout=config.request_timeout, gas_budget=config.gas_budget
        )
        self._salt_service = salt_service or SaltServiceClient(
            config.salt_service_url, timeout=config.request_timeout
        )
        self._prover = prover or ProverClient(
            config.prover_endpoint, timeout=config.prover_timeout
        )
        self._faucet = faucet or FaucetClient(
            config.faucet_endpoint, timeout=config.request_timeout
        )

        self.events = events or EventBus()
        self._navigator = navigator
        self._single_flight = SingleFlight() if config.single_flight else None
        self._state = WorkflowState()
        self._operations: Dict[WorkflowStep, Callable[[], Awaitable[Any]]] = {
            WorkflowStep.KEY_MATERIAL: self.generate_key_material,
            WorkflowStep.SALT: self.derive_salt,
            WorkflowStep.ADDRESS: self.derive_address,
            WorkflowStep.PROOF: self.acquire_proof,
        }

    @classmethod
    async def create(
        cls, config: ZkFlowConfig, crypto: Optional[ZkLoginCrypto] = None, **kwargs: Any
    ) -> "ZkLoginWorkflow":
        """Construct a workflow and restore its persisted state."""
        workflow = cls(config, crypto, **kwargs)
        await workflow.restore()
        return workflow

    # ------------------------------------------------------------------
    # Read access
    def get_state(self) -> WorkflowState:
        """Return a snapshot of the current state.

        The records are copies; changing them does not affect the workflow.
        """
        return self._state.snapshot()

    def get_config(self) -> ZkFlowConfig:
        return self._config.model_copy()

    @property
    def current_step(self) -> int:
        return self._state.current_step

    @property
    def is_ready(self) -> bool:
        return self._state.is_ready

    def subscribe(self, event: EventName, handler: Handler) -> None:
        self.events.subscribe(event, handler)

    def unsubscribe(self, event: EventName, handler: Handler) -> None:
        self.events.unsubscribe(event, handler)

    # ------------------------------------------------------------------
    # Step operations
    async def generate_key_material(self) -> EphemeralKeyMaterial:
        """Step 1: generate the ephemeral key pair bound to the current epoch."""
        return await self._run_step(
            WorkflowStep.KEY_MATERIAL,
            self._generate_key_material,
            flight_key=WorkflowStep.KEY_MATERIAL,
        )

    def redirect_to_provider(
        self, provider: Optional[str] = None, state: Optional[str] = None
    ) -> str:
        """Step 2: build the provider's authorization URL.

        The URL is handed to the configured navigator, if any, and returned.
        ``current_step`` does not change since control leaves the process.
        """
        with self._step_guard(WorkflowStep.OAUTH_REDIRECT):
            self._require(WorkflowStep.OAUTH_REDIRECT)
            material = self._state.ephemeral_key_material
            if not material.nonce:
                # restored key material carries no nonce
                nonce = self._crypto.generate_nonce(
                    material.key_pair, material.max_epoch, material.randomness
                )
                material = material.model_copy(update={"nonce": nonce})
                self._state.ephemeral_key_material = material

            name = provider or self._config.provider
            oauth = OAuthProvider(
                name,
                self._config.client_id,
                self._config.redirect_uri,
                auth_url=self._config.oauth_auth_url if name == "custom" else None,
                scope=self._config.oauth_scope,
            )
            url = oauth.build_auth_url(material.nonce, state)
            logger.debug(f"Redirecting to OAuth provider: {name}")
            if self._navigator is not None:
                self._navigator(url)
            return url

    async def handle_callback(self, url: str) -> IdentityToken:
        """Step 3: read the identity token from the provider's redirect URL."""
        token = await self._run_step(
            WorkflowStep.TOKEN,
            lambda: self._handle_callback(url),
            flight_key=(WorkflowStep.TOKEN, url),
        )
        await self._advance(WorkflowStep.TOKEN)
        return token

    async def derive_salt(self) -> UserSalt:
        """Step 4: fetch the user salt for the current token."""
        salt = await self._run_step(
            WorkflowStep.SALT, self._derive_salt, flight_key=WorkflowStep.SALT
        )
        await self._advance(WorkflowStep.SALT)
        return salt

    async def derive_address(self) -> DerivedAddress:
        """Step 5: derive the account address and look up its balance."""
        address = await self._run_step(
            WorkflowStep.ADDRESS, self._derive_address, flight_key=WorkflowStep.ADDRESS
        )
        await self._advance(WorkflowStep.ADDRESS)
        return address

    async def acquire_proof(self) -> ProofBundle:
        """Step 6: request the zero-knowledge proof from the prover."""
        return await self._run_step(
            WorkflowStep.PROOF, self._acquire_proof, flight_key=WorkflowStep.PROOF
        )

    async def execute_transaction(
        self, options: Optional[TransactionOptions] = None
    ) -> str:
        """Sign and submit a transaction from the derived address.

        Available once the workflow is ready; returns the transaction digest
        and leaves ``current_step`` untouched.
        """
        return await self._run_step(
            WorkflowStep.TRANSACTION,
            lambda: self._execute_transaction(options or TransactionOptions()),
            flight_key=None,
        )

    async def request_faucet_funds(self) -> Optional[str]:
        """Request test funds for the derived address and refresh its balance."""
        with self._step_guard(None, ErrorCode.FAUCET_REQUEST_FAILED, "request test tokens"):
            address = self._state.zklogin_address
            if address is None:
                raise PreconditionError("ZkLogin address not generated")
            logger.debug("Requesting test tokens from faucet...")
            await self._faucet.request_funds(address.address)
            address.balance = await self._lookup_balance(address.address)
            logger.info(f"Test tokens requested for {address.address}")
            return address.balance

    async def refresh_balance(self) -> str:
        """Refresh the cached balance of the derived address."""
        address = self._state.zklogin_address
        if address is None:
            raise PreconditionError("ZkLogin address not generated")
        address.balance = await self._chain.get_balance(address.address)
        return address.balance

    async def reset(self) -> None:
        """Purge both stores, return to step 0 and start step 1 again."""
        logger.debug("Resetting all state...")
        await self._durable.clear()
        await self._session.clear()
        self._state = WorkflowState()
        self._emit(WorkflowEvent.STEP_CHANGED, self._state.current_step)
        logger.info("Workflow state reset")
        await self._auto_invoke(WorkflowStep.KEY_MATERIAL)

    async def aclose(self) -> None:
        """Close HTTP clients and the stores this workflow opened itself."""
        for adapter in (self._chain, self._salt_service, self._prover, self._faucet):
            closer = getattr(adapter, "aclose", None)
            if closer is not None:
                await closer()
        for store in self._owned_stores:
            if hasattr(store, "disconnect"):
                await store.disconnect()
            elif hasattr(store, "close"):
                store.close()
        self._owned_stores = []

    # ------------------------------------------------------------------
    # Step bodies
    async def _generate_key_material(self) -> EphemeralKeyMaterial:
        logger.debug("Generating ephemeral key pair...")
        current_epoch = await self._chain.get_current_epoch()
        max_epoch = calculate_max_epoch(current_epoch)

        key_pair = self._crypto.generate_keypair()
        randomness = self._crypto.generate_randomness()
        nonce = self._crypto.generate_nonce(key_pair, max_epoch, randomness)
        material = EphemeralKeyMaterial(
            key_pair=key_pair, max_epoch=max_epoch, randomness=randomness, nonce=nonce
        )

        await self._session.set(StorageKeys.EPHEMERAL_KEYPAIR, key_pair.secret_key())
        await self._session.set(StorageKeys.MAX_EPOCH, str(max_epoch))
        await self._session.set(StorageKeys.RANDOMNESS, randomness)

        self._state.ephemeral_key_material = material
        self._reach(WorkflowStep.KEY_MATERIAL)
        self._emit(WorkflowEvent.KEYPAIR_GENERATED, material)
        self._emit(WorkflowEvent.STEP_CHANGED, self._state.current_step)
        logger.info(f"Ephemeral key pair generated, max epoch {max_epoch}")
        return material

    async def _handle_callback(self, url: str) -> IdentityToken:
        logger.debug("Handling OAuth callback...")
        raw_token = validate_callback(parse_callback(url))
        token = decode_identity_token(raw_token)

        await self._session.set(StorageKeys.JWT_TOKEN, raw_token)

        self._state.jwt = token
        self._reach(WorkflowStep.TOKEN)
        self._emit(WorkflowEvent.JWT_RECEIVED, token)
        self._emit(WorkflowEvent.STEP_CHANGED, self._state.current_step)
        logger.info(f"JWT received for subject {token.claims.get('sub')}")
        return token

    async def _derive_salt(self) -> UserSalt:
        self._require(WorkflowStep.SALT)
        logger.debug("Generating user salt...")
        salt = await self._salt_service.fetch_salt(self._state.jwt.raw_token)
        record = UserSalt(salt=salt)

        await self._durable.set(StorageKeys.USER_SALT, record.to_json())

        self._state.user_salt = record
        self._reach(WorkflowStep.SALT)
        self._emit(WorkflowEvent.SALT_GENERATED, record)
        self._emit(WorkflowEvent.STEP_CHANGED, self._state.current_step)
        return record

    async def _derive_address(self) -> DerivedAddress:
        self._require(WorkflowStep.ADDRESS)
        logger.debug("Generating zkLogin address...")
        token = self._state.jwt
        salt = self._state.user_salt.salt

        subject = token.claims.get(KEY_CLAIM_NAME)
        if not subject or not token.claims.get("aud"):
            raise DecodeError("JWT missing required claims (sub, aud)")
        audience = primary_audience(token)

        address = self._crypto.jwt_to_address(token.raw_token, salt)
        seed = self._crypto.address_seed(salt, KEY_CLAIM_NAME, str(subject), audience)
        balance = await self._lookup_balance(address)
        record = DerivedAddress(address=address, address_seed=seed, balance=balance)

        await self._durable.set(StorageKeys.ZKLOGIN_ADDRESS, record.to_json())

        self._state.zklogin_address = record
        self._reach(WorkflowStep.ADDRESS)
        self._emit(WorkflowEvent.ADDRESS_GENERATED, record)
        self._emit(WorkflowEvent.STEP_CHANGED, self._state.current_step)
        logger.info(f"ZkLogin address derived: {address}")
        return record

    async def _acquire_proof(self) -> ProofBundle:
        self._require(WorkflowStep.PROOF)
        logger.debug("Requesting ZK proof...")
        material = self._state.ephemeral_key_material
        request = ProofRequest(
            jwt=self._state.jwt.raw_token,
            extended_ephemeral_public_key=self._crypto.extended_public_key(
                material.key_pair
            ),
            max_epoch=material.max_epoch,
            jwt_randomness=material.randomness,
            salt=self._state.user_salt.salt,
            key_claim_name=KEY_CLAIM_NAME,
        )
        proof = await self._prover.request_proof(request)

        await self._session.set(StorageKeys.ZK_PROOF, proof.to_json())

        self._state.proof = proof
        self._reach(WorkflowStep.PROOF)
        self._state.is_ready = self._has_all_records()
        self._emit(WorkflowEvent.PROOF_RECEIVED, proof)
        self._emit(WorkflowEvent.STEP_CHANGED, self._state.current_step)
        if self._state.is_ready:
            self._emit(WorkflowEvent.READY)
            logger.info("ZkLogin workflow ready")
        else:
            logger.warning("ZK proof received but the address has not been derived")
        return proof

    async def _execute_transaction(self, options: TransactionOptions) -> str:
        if not self._state.is_ready:
            raise PreconditionError("ZkLogin not ready. Complete all steps first.")
        self._require(WorkflowStep.TRANSACTION)
        logger.debug("Executing transaction...")
        material = self._state.ephemeral_key_material
        address = self._state.zklogin_address

        tx_bytes = await self._chain.build_transaction(address.address, options)
        user_signature = material.key_pair.sign_transaction(base64.b64decode(tx_bytes))
        signature = self._crypto.zklogin_signature(
            self._state.proof.to_inputs(),
            material.max_epoch,
            user_signature,
            address.address_seed,
        )
        digest = await self._chain.execute_transaction(tx_bytes, signature)
        logger.info(f"Transaction executed: {digest}")
        return digest

    # ------------------------------------------------------------------
    # Restoration
    async def restore(self) -> WorkflowState:
        """Overlay the state with every record the stores still hold.

        Unreadable records are removed and skipped. Missing key material is
        regenerated by running step 1.
        """
        await self._restore_key_material()
        await self._restore_token()
        self._state.user_salt = await self._restore_record(
            self._durable, StorageKeys.USER_SALT, UserSalt
        )
        self._state.zklogin_address = await self._restore_record(
            self._durable, StorageKeys.ZKLOGIN_ADDRESS, DerivedAddress
        )
        self._state.proof = await self._restore_record(
            self._session, StorageKeys.ZK_PROOF, ProofBundle
        )

        self._state.current_step = max(self._state.current_step, restored_step(self._state))
        self._state.is_ready = self._has_all_records()
        logger.debug(f"State restored. Current step: {self._state.current_step}")

        if self._state.ephemeral_key_material is None:
            await self._auto_invoke(WorkflowStep.KEY_MATERIAL)
        return self.get_state()

    async def _restore_key_material(self) -> None:
        keys = (StorageKeys.EPHEMERAL_KEYPAIR, StorageKeys.MAX_EPOCH, StorageKeys.RANDOMNESS)
        secret, max_epoch, randomness = [await self._session.get(key) for key in keys]
        if not (secret and max_epoch and randomness):
            logger.debug("No complete ephemeral key material stored")
            return
        try:
            key_pair = self._crypto.keypair_from_secret(secret)
            epoch = int(max_epoch)
        except (DecodeError, ValueError) as exc:
            logger.warning(f"Discarding stored ephemeral key material: {exc}")
            for key in keys:
                await self._session.remove(key)
            return
        self._state.ephemeral_key_material = EphemeralKeyMaterial(
            key_pair=key_pair, max_epoch=epoch, randomness=randomness, nonce=""
        )

    async def _restore_token(self) -> None:
        raw_token = await self._session.get(StorageKeys.JWT_TOKEN)
        if not raw_token:
            return
        try:
            token = decode_identity_token(raw_token)
        except DecodeError as exc:
            logger.warning(f"Discarding malformed stored JWT: {exc}")
            await self._session.remove(StorageKeys.JWT_TOKEN)
            return
        if not token.is_valid:
            logger.info(f"Restored JWT expired at {token.expires_at}")
        self._state.jwt = token

    async def _restore_record(
        self, store: KeyValueStore, key: str, model: Type[RecordT]
    ) -> Optional[RecordT]:
        raw = await store.get(key)
        if not raw:
            return None
        try:
            return model.from_json(raw)
        except ValidationError as exc:
            logger.warning(f"Discarding unreadable {key} record: {exc}")
            await store.remove(key)
            return None

    # ------------------------------------------------------------------
    # Helpers
    async def _run_step(
        self,
        step: WorkflowStep,
        body: Callable[[], Awaitable[Any]],
        flight_key: Optional[Hashable],
    ) -> Any:
        async def guarded() -> Any:
            with self._step_guard(step):
                return await body()

        if self._single_flight is None or flight_key is None:
            return await guarded()
        return await self._single_flight.do(flight_key, guarded)

    @contextmanager
    def _step_guard(
        self,
        step: Optional[WorkflowStep],
        code: Optional[ErrorCode] = None,
        action: Optional[str] = None,
    ) -> Iterator[None]:
        """Record, publish and re-raise any failure tagged with its step."""
        code = code or ERROR_CODES[step]
        action = action or STEP_ACTIONS[step]
        try:
            yield
        except Exception as exc:
            message = f"Failed to {action}: {exc}"
            number = int(step) if step is not None else None
            self._state.last_error = message
            logger.error(message)
            self._emit(WorkflowEvent.ERROR, message)
            if isinstance(exc, ZkFlowError):
                raise type(exc)(message, code=code, step=number) from exc
            raise ZkFlowError(message, code=code, step=number) from exc

    async def _advance(self, step: WorkflowStep) -> None:
        if not self._config.auto_advance:
            return
        following = next_step(step)
        if following is not None:
            await self._auto_invoke(following)

    async def _auto_invoke(self, step: WorkflowStep) -> None:
        """Run ``step`` on the workflow's own initiative.

        Its failure is already recorded in ``last_error`` and published, so it
        is logged here rather than raised to the step that triggered it.
        """
        logger.debug(f"Auto-invoking step {int(step)}")
        try:
            await self._operations[step]()
        except ZkFlowError as exc:
            logger.warning(f"Automatic step {int(step)} did not complete: {exc}")

    async def _lookup_balance(self, address: str) -> str:
        # balance is a cache field; a failed lookup must not fail the step
        try:
            return await self._chain.get_balance(address)
        except AdapterError as exc:
            logger.warning(f"Balance lookup for {address} failed: {exc}")
            return "0"

    def _require(self, step: WorkflowStep) -> None:
        missing = missing_prerequisites(self._state, step)
        if missing:
            labels = ", ".join(RECORD_LABELS[name] for name in missing)
            raise PreconditionError(f"{labels} not available")

    def _has_all_records(self) -> bool:
        return not missing_records(self._state, tuple(STEP_RECORDS.values()))

    def _reach(self, step: WorkflowStep) -> None:
        self._state.current_step = max(self._state.current_step, int(step))

    def _emit(self, event: WorkflowEvent, *args: Any) -> None:
        self.events.publish(event, *args)


async def create_workflow(
    config: ZkFlowConfig, crypto: Optional[ZkLoginCrypto] = None, **kwargs: Any
) -> ZkLoginWorkflow:
    """Convenience wrapper around :meth:`ZkLoginWorkflow.create`."""
    return await ZkLoginWorkflow.create(config, crypto, **kwargs)
