"""Grantor account identity, deployment metadata and signing."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from .config import Config
from .errors import SigningError
from .signing import Delegation, sign_delegation


@dataclass(frozen=True)
class AccountMetadata:
    """Deployment data for a counterfactual grantor account."""

    factory: Optional[str] = None
    factory_data: Optional[str] = None

    @property
    def is_deployable(self) -> bool:
        return bool(self.factory and self.factory_data)

    def to_dict(self) -> Dict[str, Any]:
        return {"factory": self.factory, "factoryData": self.factory_data}


class AccountController:
    """
    Supplies the grantor account to the lifecycle orchestrator.

    The same account is used on every supported chain. Signing uses the
    configured HMAC secret.
    """

    def __init__(
        self,
        address: Optional[str] = None,
        factory: Optional[str] = None,
        factory_data: Optional[str] = None,
        signing_secret: Optional[str] = None,
    ):
        self._address = address or Config.GRANTOR_ADDRESS
        self._metadata = AccountMetadata(
            factory=factory if factory is not None else Config.ACCOUNT_FACTORY,
            factory_data=factory_data if factory_data is not None else Config.ACCOUNT_FACTORY_DATA,
        )
        self._signing_secret = signing_secret if signing_secret is not None else Config.SIGNING_SECRET

    @property
    def address(self) -> str:
        return self._address

    async def get_account_address(self, chain_id: int) -> str:
        return self._address

    async def get_account_metadata(self, chain_id: int) -> AccountMetadata:
        return self._metadata

    async def sign_delegation(self, chain_id: int, delegation: Delegation) -> Delegation:
        """
        Sign a delegation issued by this account.

        Raises:
            SigningError: If the delegation names another delegator or no secret is set
        """
        if delegation.delegator.lower() != self._address.lower():
            raise SigningError(
                f"Delegator {delegation.delegator} does not match account {self._address}"
            )
        signed = sign_delegation(delegation, chain_id, self._signing_secret)
        logger.debug(f"Signed delegation for {delegation.delegate} on chain {chain_id}")
        return signed
