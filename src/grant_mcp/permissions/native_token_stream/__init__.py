"""native-token-stream: stream native tokens at a fixed rate from a start time."""

from .context import DEFAULT_INITIAL_AMOUNT, DEFAULT_MAX_AMOUNT
from .handlers import NativeTokenStreamHandlers
from .types import NATIVE_TOKEN_STREAM, NativeTokenStreamContext, NativeTokenStreamMetadata

__all__ = [
    "DEFAULT_INITIAL_AMOUNT",
    "DEFAULT_MAX_AMOUNT",
    "NATIVE_TOKEN_STREAM",
    "NativeTokenStreamContext",
    "NativeTokenStreamHandlers",
    "NativeTokenStreamMetadata",
]
