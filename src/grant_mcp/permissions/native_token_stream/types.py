"""Context and metadata shapes for native token stream permissions."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from ..dates import TimePeriod

NATIVE_TOKEN_STREAM = "native-token-stream"


@dataclass(frozen=True)
class PermissionDetails:
    initial_amount: Optional[str]
    max_amount: Optional[str]
    time_period: TimePeriod
    start_time: str
    amount_per_period: str


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    decimals: int


@dataclass(frozen=True)
class AccountDetails:
    address: str
    chain_name: str


@dataclass(frozen=True)
class NativeTokenStreamContext:
    """Display projection of a request; replaced, never mutated, on edit."""

    expiry: str
    justification: str
    is_adjustment_allowed: bool
    account_details: AccountDetails
    token_metadata: TokenMetadata
    permission_details: PermissionDetails

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["permission_details"]["time_period"] = self.permission_details.time_period.value
        return data


@dataclass(frozen=True)
class NativeTokenStreamMetadata:
    """Derived values and per-field errors for one context."""

    amount_per_second: str
    validation_errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"amount_per_second": self.amount_per_second, "validation_errors": dict(self.validation_errors)}
