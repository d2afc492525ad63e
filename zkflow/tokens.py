"""Identity token decoding.

Tokens are decoded without signature verification: the prover and the chain
check them, the workflow only needs their claims.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import jwt

from .errors import DecodeError
from .models import IdentityToken


def decode_identity_token(
    token: str, now: Optional[datetime] = None
) -> IdentityToken:
    """Decode ``token`` and derive its validity from the ``exp`` claim."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise DecodeError(f"Invalid JWT token: {exc}") from exc

    exp = claims.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        try:
            expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise DecodeError(f"Invalid JWT token: unusable exp claim {exp!r}") from exc
        is_valid = (now or datetime.now(timezone.utc)) < expires_at
    else:
        expires_at = None
        is_valid = False

    return IdentityToken(
        raw_token=token, claims=claims, is_valid=is_valid, expires_at=expires_at
    )


def primary_audience(token: IdentityToken) -> str:
    """Return ``aud``, taking the first entry when the claim is a list."""
    aud = token.claims.get("aud")
    if isinstance(aud, list):
        aud = aud[0] if aud else None
    if not aud:
        raise DecodeError("JWT missing required claim 'aud'")
    return str(aud)
