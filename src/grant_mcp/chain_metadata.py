"""Per-chain metadata and delegation framework contract addresses.

A built-in table covers Ethereum Mainnet and Sepolia. Entries can be
added or overridden from a YAML file (Config.CHAIN_METADATA_PATH):

    chains:
      - chain_id: 11155111
        name: Sepolia
        symbol: ETH
        decimals: 18
        explorer_url: https://sepolia.etherscan.io
        delegation_manager: "0x..."
        enforcers:
          TimestampEnforcer: "0x..."
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from loguru import logger

from .config import Config
from .errors import ChainNotSupportedError


class Enforcers(str, Enum):
    """Restriction enforcer contracts used by granted delegations."""

    LIMITED_CALLS = "LimitedCallsEnforcer"
    NATIVE_TOKEN_STREAMING = "NativeTokenStreamingEnforcer"
    NATIVE_TOKEN_PERIODIC_TRANSFER = "NativeTokenPeriodicTransferEnforcer"
    VALUE_LTE = "ValueLteEnforcer"
    TIMESTAMP = "TimestampEnforcer"
    EXACT_CALLDATA = "ExactCalldataEnforcer"
    NONCE = "NonceEnforcer"


@dataclass(frozen=True)
class DelegationContracts:
    """Delegation manager plus enforcer addresses for one deployment."""

    delegation_manager: str
    enforcers: Dict[str, str] = field(default_factory=dict)

    def enforcer(self, name: str) -> str:
        """
        Address of an enforcer.

        Raises:
            KeyError: If the deployment has no such enforcer
        """
        try:
            return self.enforcers[name]
        except KeyError:
            raise KeyError(f"Enforcer '{name}' is not deployed")


@dataclass(frozen=True)
class ChainMetadata:
    chain_id: int
    name: str
    symbol: str
    decimals: int
    explorer_url: str
    contracts: DelegationContracts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": hex(self.chain_id),
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "explorerUrl": self.explorer_url,
            "delegationManager": self.contracts.delegation_manager,
        }


CONTRACTS_1_3_0 = DelegationContracts(
    delegation_manager="0xdb9B1e94B5b69Df7e401DDbedE43491141047dB3",
    enforcers={
        Enforcers.LIMITED_CALLS.value: "0x04658B29F6b82ed55274221a06Fc97D318E25416",
        Enforcers.NATIVE_TOKEN_STREAMING.value: "0xD10b97905a320b13a0608f7E9cC506b56747df19",
        Enforcers.NATIVE_TOKEN_PERIODIC_TRANSFER.value: "0x9BC0FAf4Aca5AE429F4c06aEEaC517520CB16BD9",
        Enforcers.VALUE_LTE.value: "0x92Bf12322527cAA612fd31a0e810472BBB106A8F",
        Enforcers.TIMESTAMP.value: "0x1046bb45C8d673d4ea75321280DB34899413c069",
        Enforcers.EXACT_CALLDATA.value: "0x99F2e9bF15ce5eC84685604836F71aB835DBBdED",
        Enforcers.NONCE.value: "0xDE4f2FAC4B3D87A1d9953Ca5FC09FCa7F366254f",
    },
)

BUILTIN_CHAINS: Dict[int, ChainMetadata] = {
    1: ChainMetadata(
        chain_id=1,
        name="Ethereum Mainnet",
        symbol="ETH",
        decimals=18,
        explorer_url="https://etherscan.io",
        contracts=CONTRACTS_1_3_0,
    ),
    11155111: ChainMetadata(
        chain_id=11155111,
        name="Sepolia",
        symbol="ETH",
        decimals=18,
        explorer_url="https://sepolia.etherscan.io",
        contracts=CONTRACTS_1_3_0,
    ),
}


class ChainMetadataRegistry:
    """
    Lookup of chain metadata for the chains this server grants on.

    Only chains listed in supported_chain_ids resolve; everything else
    raises ChainNotSupportedError.
    """

    def __init__(
        self,
        supported_chain_ids: Optional[Iterable[int]] = None,
        config_path: Optional[str] = None,
    ):
        """
        Initialize the registry.

        Args:
            supported_chain_ids: Chains to serve (defaults to Config.SUPPORTED_CHAIN_IDS)
            config_path: Optional YAML override file (defaults to Config.CHAIN_METADATA_PATH)
        """
        if supported_chain_ids is None:
            supported_chain_ids = Config.SUPPORTED_CHAIN_IDS
        self._supported = set(supported_chain_ids)
        self._config_path = config_path if config_path is not None else Config.CHAIN_METADATA_PATH
        self._chains: Dict[int, ChainMetadata] = dict(BUILTIN_CHAINS)
        self._load_overrides()

    def _load_overrides(self) -> int:
        """
        Merge chain entries from the YAML override file.

        Returns:
            Number of entries loaded
        """
        if not self._config_path:
            return 0

        config_path = Path(self._config_path)
        if not config_path.exists():
            logger.debug(f"Chain metadata file not found at {self._config_path}, using built-ins")
            return 0

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse chain metadata file: {e}")
            return 0
        except OSError as e:
            logger.error(f"Failed to read chain metadata file: {e}")
            return 0

        if not data:
            logger.debug("Chain metadata file is empty, using built-ins")
            return 0

        loaded = 0
        for entry in data.get("chains", []):
            try:
                chain = self._parse_entry(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Invalid chain metadata entry ({e}): {entry}")
                continue
            self._chains[chain.chain_id] = chain
            loaded += 1
            logger.debug(f"Loaded chain metadata for {chain.chain_id} ({chain.name})")

        logger.info(f"Loaded {loaded} chain metadata override(s) from {self._config_path}")
        return loaded

    def _parse_entry(self, entry: Dict[str, Any]) -> ChainMetadata:
        chain_id = int(entry["chain_id"])
        base = self._chains.get(chain_id)
        base_contracts = base.contracts if base else CONTRACTS_1_3_0

        enforcers = dict(base_contracts.enforcers)
        enforcers.update(entry.get("enforcers") or {})
        contracts = DelegationContracts(
            delegation_manager=entry.get("delegation_manager", base_contracts.delegation_manager),
            enforcers=enforcers,
        )

        if base is not None:
            return replace(
                base,
                name=entry.get("name", base.name),
                symbol=entry.get("symbol", base.symbol),
                decimals=int(entry.get("decimals", base.decimals)),
                explorer_url=entry.get("explorer_url", base.explorer_url),
                contracts=contracts,
            )

        return ChainMetadata(
            chain_id=chain_id,
            name=entry["name"],
            symbol=entry.get("symbol", "ETH"),
            decimals=int(entry.get("decimals", 18)),
            explorer_url=entry.get("explorer_url", ""),
            contracts=contracts,
        )

    def get(self, chain_id: int) -> ChainMetadata:
        """
        Metadata for a supported chain.

        Raises:
            ChainNotSupportedError: If the chain is unsupported or unknown
        """
        chain = self._chains.get(chain_id)
        if chain is None or chain_id not in self._supported:
            raise ChainNotSupportedError(chain_id)
        return chain

    def is_supported(self, chain_id: int) -> bool:
        return chain_id in self._supported and chain_id in self._chains

    def supported_chains(self) -> List[ChainMetadata]:
        return [self._chains[chain_id] for chain_id in sorted(self._supported) if chain_id in self._chains]
