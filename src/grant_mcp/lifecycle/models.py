"""Permission request data model.

Requests travel as camelCase JSON objects:

    {
        "chainId": "0xaa36a7",
        "signer": {"type": "account", "data": {"address": "0x..."}},
        "permission": {"type": "native-token-stream", "data": {...}},
        "rules": [{"type": "expiry", "data": {"timestamp": 1767225600}}],
        "isAdjustmentAllowed": true
    }

The permission payload is opaque at this level; permission types parse
and validate their own data.
"""

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from ..errors import InvalidRequestError

EXPIRY_RULE = "expiry"


def parse_chain_id(value: Any) -> int:
    """
    Parse a chain id given as 0x-hex string or integer.

    Raises:
        InvalidRequestError: If the value is not a positive integer
    """
    try:
        if isinstance(value, bool):
            raise ValueError(value)
        if isinstance(value, str):
            chain_id = int(value, 16) if value.lower().startswith("0x") else int(value)
        else:
            chain_id = int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid chainId: {value!r}")
    if chain_id <= 0:
        raise InvalidRequestError(f"Invalid chainId: {value!r}")
    return chain_id


def _is_timestamp(value: Any) -> bool:
    """Integer timestamps or decimal digit strings; bools are not timestamps."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.isascii() and value.isdigit()


@dataclass(frozen=True)
class Rule:
    """Auxiliary rule attached to a request, e.g. the expiry rule."""

    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            raise InvalidRequestError(f"Invalid rule: {data!r}")
        return cls(type=data["type"], data=copy.deepcopy(data.get("data") or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "data": copy.deepcopy(self.data)}


@dataclass(frozen=True)
class Permission:
    """Typed permission payload."""

    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Permission":
        if not isinstance(data, dict):
            raise InvalidRequestError("permission must be an object")
        permission_type = data.get("type")
        if isinstance(permission_type, dict):
            permission_type = permission_type.get("name")
        if not isinstance(permission_type, str) or not permission_type:
            raise InvalidRequestError("permission.type is required")
        payload = data.get("data")
        if not isinstance(payload, dict):
            raise InvalidRequestError("permission.data must be an object")
        return cls(type=permission_type, data=copy.deepcopy(payload))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "data": copy.deepcopy(self.data)}


@dataclass(frozen=True)
class PermissionRequest:
    """
    A requester's description of the capability being asked for.

    Instances are never mutated; with_permission() and with_expiry()
    return amended copies.
    """

    chain_id: int
    signer_address: str
    permission: Permission
    rules: Tuple[Rule, ...] = ()
    is_adjustment_allowed: bool = True
    address: Optional[str] = None

    @property
    def expiry(self) -> Optional[int]:
        """Expiry timestamp from the expiry rule, if any."""
        for rule in self.rules:
            if rule.type == EXPIRY_RULE:
                timestamp = rule.data.get("timestamp")
                return int(timestamp) if timestamp is not None else None
        return None

    def with_permission(self, permission: Permission) -> "PermissionRequest":
        return replace(self, permission=permission)

    def with_expiry(self, timestamp: int) -> "PermissionRequest":
        rules = [rule for rule in self.rules if rule.type != EXPIRY_RULE]
        rules.append(Rule(type=EXPIRY_RULE, data={"timestamp": int(timestamp)}))
        return replace(self, rules=tuple(rules))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PermissionRequest":
        """
        Parse the wire form of a request.

        A top-level ``expiry`` is accepted and folded into an expiry rule.

        Raises:
            InvalidRequestError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise InvalidRequestError("Permission request must be an object")

        if "chainId" not in data:
            raise InvalidRequestError("chainId is required")
        chain_id = parse_chain_id(data["chainId"])

        signer = data.get("signer")
        signer_address = None
        if isinstance(signer, dict) and isinstance(signer.get("data"), dict):
            signer_address = signer["data"].get("address")
        if not isinstance(signer_address, str) or not signer_address:
            raise InvalidRequestError("signer.data.address is required")

        permission = Permission.from_dict(data.get("permission"))

        raw_rules = data.get("rules") or []
        if not isinstance(raw_rules, list):
            raise InvalidRequestError("rules must be a list")
        rules = tuple(Rule.from_dict(rule) for rule in raw_rules)
        for rule in rules:
            if rule.type == EXPIRY_RULE and not _is_timestamp(rule.data.get("timestamp")):
                raise InvalidRequestError("Invalid expiry rule timestamp")

        is_adjustment_allowed = data.get("isAdjustmentAllowed", True)
        if is_adjustment_allowed is None:
            is_adjustment_allowed = True
        if not isinstance(is_adjustment_allowed, bool):
            raise InvalidRequestError("isAdjustmentAllowed must be a boolean")

        request = cls(
            chain_id=chain_id,
            signer_address=signer_address,
            permission=permission,
            rules=rules,
            is_adjustment_allowed=is_adjustment_allowed,
            address=data.get("address"),
        )

        expiry = data.get("expiry")
        if expiry is not None and request.expiry is None:
            if not _is_timestamp(expiry):
                raise InvalidRequestError(f"Invalid expiry: {expiry!r}")
            request = request.with_expiry(int(expiry))

        return request

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "chainId": hex(self.chain_id),
            "signer": {"type": "account", "data": {"address": self.signer_address}},
            "permission": self.permission.to_dict(),
            "rules": [rule.to_dict() for rule in self.rules],
            "isAdjustmentAllowed": self.is_adjustment_allowed,
        }
        if self.address is not None:
            data["address"] = self.address
        return data


@dataclass
class PermissionRequestResult:
    """Outcome of orchestrating one request."""

    approved: bool
    response: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.approved:
            return {"approved": True, "response": self.response}
        return {"approved": False, "reason": self.reason}
