"""Declared step ordering for the zkLogin workflow.

The workflow consults these tables for preconditions, for which step runs
after a success, and for how much progress a restored record is worth.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from .errors import ErrorCode
from .models import WorkflowState


class WorkflowStep(IntEnum):
    UNINITIALIZED = 0
    KEY_MATERIAL = 1
    OAUTH_REDIRECT = 2
    TOKEN = 3
    SALT = 4
    ADDRESS = 5
    PROOF = 6
    TRANSACTION = 7


TERMINAL_STEP = WorkflowStep.PROOF

NEXT_STEP: Dict[WorkflowStep, WorkflowStep] = {
    WorkflowStep.TOKEN: WorkflowStep.SALT,
    WorkflowStep.SALT: WorkflowStep.ADDRESS,
    WorkflowStep.ADDRESS: WorkflowStep.PROOF,
}

# WorkflowState attribute -> human readable name
RECORD_LABELS: Dict[str, str] = {
    "ephemeral_key_material": "Ephemeral key pair",
    "jwt": "JWT",
    "user_salt": "User salt",
    "zklogin_address": "ZkLogin address",
    "proof": "ZK proof",
}

PREREQUISITES: Dict[WorkflowStep, Tuple[str, ...]] = {
    WorkflowStep.OAUTH_REDIRECT: ("ephemeral_key_material",),
    WorkflowStep.SALT: ("jwt",),
    WorkflowStep.ADDRESS: ("jwt", "user_salt"),
    WorkflowStep.PROOF: ("ephemeral_key_material", "jwt", "user_salt"),
    WorkflowStep.TRANSACTION: (
        "ephemeral_key_material",
        "zklogin_address",
        "proof",
    ),
}

# Record produced by each step, and what must sit beside it on restore for
# the step to count as reached.
STEP_RECORDS: Dict[WorkflowStep, str] = {
    WorkflowStep.KEY_MATERIAL: "ephemeral_key_material",
    WorkflowStep.TOKEN: "jwt",
    WorkflowStep.SALT: "user_salt",
    WorkflowStep.ADDRESS: "zklogin_address",
    WorkflowStep.PROOF: "proof",
}

RESTORE_REQUIREMENTS: Dict[WorkflowStep, Tuple[str, ...]] = {
    WorkflowStep.KEY_MATERIAL: (),
    WorkflowStep.TOKEN: (),
    WorkflowStep.SALT: ("jwt",),
    WorkflowStep.ADDRESS: ("jwt", "user_salt"),
    WorkflowStep.PROOF: (
        "ephemeral_key_material",
        "jwt",
        "user_salt",
        "zklogin_address",
    ),
}

ERROR_CODES: Dict[WorkflowStep, ErrorCode] = {
    WorkflowStep.KEY_MATERIAL: ErrorCode.KEYPAIR_GENERATION_FAILED,
    WorkflowStep.OAUTH_REDIRECT: ErrorCode.OAUTH_REDIRECT_FAILED,
    WorkflowStep.TOKEN: ErrorCode.OAUTH_CALLBACK_FAILED,
    WorkflowStep.SALT: ErrorCode.SALT_GENERATION_FAILED,
    WorkflowStep.ADDRESS: ErrorCode.ADDRESS_GENERATION_FAILED,
    WorkflowStep.PROOF: ErrorCode.ZK_PROOF_FAILED,
    WorkflowStep.TRANSACTION: ErrorCode.TRANSACTION_EXECUTION_FAILED,
}


def next_step(step: WorkflowStep) -> Optional[WorkflowStep]:
    """Return the step auto-invoked after ``step`` succeeds, if any."""
    return NEXT_STEP.get(step)


def missing_records(state: WorkflowState, names: Tuple[str, ...]) -> List[str]:
    return [name for name in names if getattr(state, name) is None]


def missing_prerequisites(state: WorkflowState, step: WorkflowStep) -> List[str]:
    """Records ``step`` needs that ``state`` does not hold."""
    return missing_records(state, PREREQUISITES.get(step, ()))


def restored_step(state: WorkflowState) -> int:
    """Highest step credited by the records present in ``state``.

    A record only counts when the records its step depends on are present
    as well; nothing is inferred from later records.
    """
    reached = int(WorkflowStep.UNINITIALIZED)
    for step, record in STEP_RECORDS.items():
        if getattr(state, record) is None:
            continue
        if missing_records(state, RESTORE_REQUIREMENTS[step]):
            continue
        reached = max(reached, int(step))
    return reached
