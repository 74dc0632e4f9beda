"""Restriction (caveat) construction for granted delegations."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from ..chain_metadata import DelegationContracts, Enforcers

UINT128_MAX = 2**128 - 1
UINT256_MAX = 2**256 - 1


def _uint(value: int, bits: int, name: str) -> str:
    value = int(value)
    if value < 0 or value >= 2**bits:
        raise ValueError(f"{name} out of range for uint{bits}: {value}")
    return f"{value:0{bits // 4}x}"


def _hex_bytes(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"{name} must be a 0x-prefixed hex string")
    body = value[2:]
    if len(body) % 2:
        raise ValueError(f"{name} must contain whole bytes")
    int(body or "0", 16)
    return body.lower()


def native_token_streaming_terms(
    initial_amount: int, max_amount: int, amount_per_second: int, start_time: int
) -> str:
    """Pack four uint256 words: initial, max, amount per second, start time."""
    return "0x" + "".join(
        (
            _uint(initial_amount, 256, "initialAmount"),
            _uint(max_amount, 256, "maxAmount"),
            _uint(amount_per_second, 256, "amountPerSecond"),
            _uint(start_time, 256, "startTime"),
        )
    )


def exact_calldata_terms(calldata: str) -> str:
    """Terms are the permitted calldata itself."""
    return "0x" + _hex_bytes(calldata, "calldata")


def timestamp_terms(after_threshold: int, before_threshold: int) -> str:
    """Pack two uint128 words: valid after, valid before (0 means unbounded)."""
    return "0x" + _uint(after_threshold, 128, "timestampAfterThreshold") + _uint(
        before_threshold, 128, "timestampBeforeThreshold"
    )


@dataclass(frozen=True)
class Restriction:
    """One scoping restriction: enforcer contract plus encoded terms."""

    enforcer: str
    terms: str
    args: str = "0x"

    def to_dict(self) -> Dict[str, str]:
        return {"enforcer": self.enforcer, "terms": self.terms, "args": self.args}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Restriction":
        return cls(enforcer=data["enforcer"], terms=data["terms"], args=data.get("args", "0x"))


RESTRICTION_TYPES: Dict[str, Tuple[Enforcers, Callable[..., str]]] = {
    "nativeTokenStreaming": (Enforcers.NATIVE_TOKEN_STREAMING, native_token_streaming_terms),
    "exactCalldata": (Enforcers.EXACT_CALLDATA, exact_calldata_terms),
    "timestamp": (Enforcers.TIMESTAMP, timestamp_terms),
}


class RestrictionBuilder:
    """
    Ordered restriction set for one delegation.

    Restrictions are kept in the order they are added; permission types
    append theirs first and the orchestrator appends the expiry bound last.
    """

    def __init__(self, contracts: DelegationContracts):
        self.contracts = contracts
        self._restrictions: List[Restriction] = []

    def add_restriction(self, restriction_type: str, *args: Any) -> "RestrictionBuilder":
        """
        Append a restriction of a known type.

        Args:
            restriction_type: Key of RESTRICTION_TYPES
            *args: Arguments for the type's terms encoder

        Returns:
            self, for chaining

        Raises:
            ValueError: If the type is unknown or the arguments do not encode
        """
        try:
            enforcer, encode_terms = RESTRICTION_TYPES[restriction_type]
        except KeyError:
            raise ValueError(f"Unknown restriction type: {restriction_type}")

        self._restrictions.append(
            Restriction(
                enforcer=self.contracts.enforcer(enforcer.value),
                terms=encode_terms(*args),
            )
        )
        return self

    def build(self) -> List[Restriction]:
        return list(self._restrictions)

    def __len__(self) -> int:
        return len(self._restrictions)
