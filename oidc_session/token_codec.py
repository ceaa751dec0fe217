"""
Decode JWT claims without signature verification.
Tokens reach the client over TLS straight from the identity provider; the client only
needs iat/exp for expiry bookkeeping. Signature, audience and issuer checks belong to
resource servers.
"""
from dataclasses import dataclass, field
from typing import Any

import jwt

from oidc_session.errors import TokenDecodeError


@dataclass(frozen=True)
class Claims:
    issued_at: float
    expires_at: float
    subject: str | None = None
    scope: str | None = None
    payload: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def scopes(self) -> set[str]:
        return set(self.scope.split()) if self.scope else set()


def _numeric_claim(payload: dict, name: str) -> float:
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TokenDecodeError(f"Token claim '{name}' is missing or not numeric")
    return value


def decode_token(token: str) -> Claims:
    """Return the claim set of token. Raises TokenDecodeError if it is not a readable JWT."""
    if not token:
        raise TokenDecodeError("Token is empty")
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise TokenDecodeError(f"Malformed token: {e}") from e
    if not isinstance(payload, dict):
        raise TokenDecodeError("Token payload is not a JSON object")
    scope = payload.get("scope")
    if isinstance(scope, list):
        scope = " ".join(str(s) for s in scope)
    sub = payload.get("sub")
    return Claims(
        issued_at=_numeric_claim(payload, "iat"),
        expires_at=_numeric_claim(payload, "exp"),
        subject=str(sub) if sub is not None else None,
        scope=scope,
        payload=payload,
    )
