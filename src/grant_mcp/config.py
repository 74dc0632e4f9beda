"""Centralized configuration for the grant server."""

import os
from typing import Optional

DEFAULT_DEV_SECRET = "default_dev_signing_secret_change_in_production_32b"


def _parse_chain_ids(raw: str) -> list[int]:
    """Parse a comma-separated list of chain ids (decimal or 0x-hex)."""
    chain_ids = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            chain_ids.append(int(chunk, 16) if chunk.lower().startswith("0x") else int(chunk))
        except ValueError as e:
            raise ValueError(f"Invalid SUPPORTED_CHAIN_IDS entry '{chunk}': {e}")
    return chain_ids


class Config:
    """
    Grant server configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables.
    """

    @staticmethod
    def _parse_port(port_str: str) -> int:
        """Parse and validate port number from string."""
        try:
            port = int(port_str)
            if not (1 <= port <= 65535):
                raise ValueError(f"Port must be 1-65535, got {port}")
            return port
        except ValueError as e:
            raise ValueError(f"Invalid PORT environment variable: {e}")

    # ========================================================================
    # Server Configuration
    # ========================================================================
    SERVER_NAME: str = os.getenv("SERVER_NAME", "GrantServer")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _parse_port.__func__(os.getenv("PORT", "8002"))
    AUDIT_LOG_PATH: str = os.getenv("AUDIT_LOG_PATH", "./grant_audit.jsonl")
    LOG_FILE: str = os.getenv("LOG_FILE", "grant_server.log")

    # ========================================================================
    # Confirmation Flow
    # ========================================================================
    DEBOUNCE_DELAY_MS: int = int(os.getenv("DEBOUNCE_DELAY_MS", "500"))
    CONFIRMATION_TIMEOUT_SECONDS: float = float(
        os.getenv("CONFIRMATION_TIMEOUT_SECONDS", "0")
    )  # 0 disables the timeout

    # ========================================================================
    # Grantor Account
    # ========================================================================
    GRANTOR_ADDRESS: str = os.getenv(
        "GRANTOR_ADDRESS", "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    )
    ACCOUNT_FACTORY: Optional[str] = os.getenv("ACCOUNT_FACTORY") or None
    ACCOUNT_FACTORY_DATA: Optional[str] = os.getenv("ACCOUNT_FACTORY_DATA") or None

    # ========================================================================
    # Chains
    # ========================================================================
    SUPPORTED_CHAIN_IDS: list[int] = _parse_chain_ids(
        os.getenv("SUPPORTED_CHAIN_IDS", "1,11155111")
    )
    CHAIN_METADATA_PATH: Optional[str] = os.getenv("CHAIN_METADATA_PATH") or None

    # ========================================================================
    # HMAC Secret for Delegation Signatures
    # ========================================================================
    SIGNING_SECRET: str = os.getenv("SIGNING_SECRET", DEFAULT_DEV_SECRET)

    @classmethod
    def debounce_delay_seconds(cls) -> float:
        """Debounce quiet window in seconds."""
        return cls.DEBOUNCE_DELAY_MS / 1000

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Checks:
        - SIGNING_SECRET is set and not the dev default in production
        - Debounce delay is > 0 and timeout is >= 0
        - At least one chain is supported

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        is_production = os.getenv("ENVIRONMENT", "").lower() == "production"
        is_default_secret = cls.SIGNING_SECRET == DEFAULT_DEV_SECRET

        if is_production and (not cls.SIGNING_SECRET or is_default_secret):
            errors.append(
                "SIGNING_SECRET must be set to a strong secret in production. "
                "The default dev secret is not secure for production use."
            )
        elif not cls.SIGNING_SECRET:
            import warnings

            warnings.warn(
                "SIGNING_SECRET not set - granted permissions cannot be signed. "
                "Set SIGNING_SECRET environment variable."
            )
        elif is_default_secret:
            import warnings

            warnings.warn(
                "SIGNING_SECRET is using the default development secret. "
                "Set a unique secret for real deployments."
            )
        elif len(cls.SIGNING_SECRET) < 32:
            import warnings

            warnings.warn(
                f"SIGNING_SECRET is only {len(cls.SIGNING_SECRET)} characters. "
                "For security, use at least 32 characters (256 bits)."
            )

        if cls.DEBOUNCE_DELAY_MS <= 0:
            errors.append(f"DEBOUNCE_DELAY_MS must be > 0, got {cls.DEBOUNCE_DELAY_MS}")

        if cls.CONFIRMATION_TIMEOUT_SECONDS < 0:
            errors.append(
                "CONFIRMATION_TIMEOUT_SECONDS must be >= 0, "
                f"got {cls.CONFIRMATION_TIMEOUT_SECONDS}"
            )

        if not cls.SUPPORTED_CHAIN_IDS:
            errors.append("SUPPORTED_CHAIN_IDS must list at least one chain")

        if (cls.ACCOUNT_FACTORY is None) != (cls.ACCOUNT_FACTORY_DATA is None):
            errors.append(
                "ACCOUNT_FACTORY and ACCOUNT_FACTORY_DATA must be set together"
            )

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
