"""Delegation signing, verification and artifact encoding.

Delegations are signed with HMAC-SHA256 over their canonical JSON form
(sorted keys, compact separators) bound to the chain id. The
authorization artifact handed back to requesters is the 0x-hex encoding
of the canonical JSON list of signed delegations.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from .errors import SigningError
from .lifecycle.restrictions import Restriction

ROOT_AUTHORITY = "0x" + "f" * 64


@dataclass(frozen=True)
class Delegation:
    """
    Authority handed from delegator to delegate, scoped by caveats.

    Attributes:
        delegate: Grantee address allowed to redeem the delegation
        delegator: Grantor account address
        authority: Parent delegation hash, or ROOT_AUTHORITY
        caveats: Ordered restrictions the redemption must satisfy
        salt: Random 32-byte value making the delegation unique
        signature: Grantor signature ("0x" while unsigned)
    """

    delegate: str
    delegator: str
    authority: str
    caveats: Tuple[Restriction, ...] = field(default_factory=tuple)
    salt: str = "0x0"
    signature: str = "0x"

    @property
    def is_signed(self) -> bool:
        return self.signature != "0x"

    def with_signature(self, signature: str) -> "Delegation":
        return replace(self, signature=signature)

    def to_dict(self, include_signature: bool = True) -> Dict[str, Any]:
        data = {
            "delegate": self.delegate,
            "delegator": self.delegator,
            "authority": self.authority,
            "caveats": [caveat.to_dict() for caveat in self.caveats],
            "salt": self.salt,
        }
        if include_signature:
            data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Delegation":
        return cls(
            delegate=data["delegate"],
            delegator=data["delegator"],
            authority=data["authority"],
            caveats=tuple(Restriction.from_dict(caveat) for caveat in data.get("caveats", [])),
            salt=data.get("salt", "0x0"),
            signature=data.get("signature", "0x"),
        )


def _canonical(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _signature_for(delegation: Delegation, chain_id: int, secret: str) -> str:
    payload = f"{chain_id}:{_canonical(delegation.to_dict(include_signature=False))}"
    return "0x" + hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def sign_delegation(delegation: Delegation, chain_id: int, secret: str) -> Delegation:
    """
    Sign a delegation for a chain.

    Args:
        delegation: Unsigned delegation
        chain_id: Chain the delegation is valid on
        secret: HMAC secret key

    Returns:
        Copy of the delegation carrying its signature

    Raises:
        SigningError: If no secret is configured
    """
    if not secret:
        raise SigningError("Cannot sign delegation: no signing secret configured")
    return delegation.with_signature(_signature_for(delegation, chain_id, secret))


def verify_delegation(delegation: Delegation, chain_id: int, secret: str) -> bool:
    """
    Verify a delegation's signature.

    Returns:
        True if the signature matches, False otherwise (fails closed)
    """
    if not delegation.is_signed:
        logger.warning("Delegation verification failed: unsigned delegation")
        return False
    if not secret:
        logger.warning("Delegation verification failed: no secret")
        return False

    expected = _signature_for(delegation, chain_id, secret)
    if not hmac.compare_digest(delegation.signature, expected):
        logger.warning("Delegation verification failed: invalid signature")
        return False
    return True


def encode_delegations(delegations: Sequence[Delegation]) -> str:
    """Encode signed delegations as a 0x-hex artifact."""
    payload = _canonical([delegation.to_dict() for delegation in delegations])
    return "0x" + payload.encode().hex()


def decode_delegations(encoded: str) -> Optional[List[Delegation]]:
    """
    Decode an artifact WITHOUT verifying signatures.

    Use verify_delegation() on each result before trusting it.

    Returns:
        Decoded delegations, or None if the artifact cannot be parsed
    """
    if not encoded or not encoded.startswith("0x"):
        return None

    try:
        payload = bytes.fromhex(encoded[2:]).decode()
        return [Delegation.from_dict(item) for item in json.loads(payload)]
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Delegation decode failed: {e}")
        return None
