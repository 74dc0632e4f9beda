"""Restrictions for a populated native token stream permission."""

from ...lifecycle.models import Permission
from ...lifecycle.restrictions import RestrictionBuilder


async def append_restrictions(permission: Permission, builder: RestrictionBuilder) -> RestrictionBuilder:
    data = permission.data
    builder.add_restriction(
        "nativeTokenStreaming",
        int(data["initialAmount"], 16),
        int(data["maxAmount"], 16),
        int(data["amountPerSecond"], 16),
        int(data["startTime"]),
    )
    # plain native transfers only, no calldata
    builder.add_restriction("exactCalldata", "0x")
    return builder
