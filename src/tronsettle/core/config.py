# Загрузка конфигурации из .env

import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}")


class SettlementConfig:
    """Configuration for TRON transaction construction and settlement"""

    def __init__(self):
        # Network Configuration
        self.network = os.getenv("TRON_NETWORK", "testnet")  # mainnet or testnet
        self.api_key = os.getenv("TRON_API_KEY", "")
        self.request_timeout = _env_int("TRON_REQUEST_TIMEOUT", 8)

        # Local node configuration (preferred if available)
        self.local_node_enabled = os.getenv("TRON_LOCAL_NODE_ENABLED", "true").lower() == "true"

        # Network-specific local nodes
        if self.network == "mainnet":
            self.local_full_node = os.getenv("TRON_MAINNET_LOCAL_FULL_NODE", "http://127.0.0.1:8090")
            self.remote_full_node = os.getenv("TRON_REMOTE_MAINNET_FULL_NODE", "https://api.trongrid.io")
        else:  # testnet/nile
            self.local_full_node = os.getenv("TRON_TESTNET_LOCAL_FULL_NODE", "http://127.0.0.1:8090")
            self.remote_full_node = os.getenv("TRON_REMOTE_TESTNET_FULL_NODE", "https://nile.trongrid.io")

        # Chain constants
        self.symbol = "TRX"
        self.decimals = 6
        self.curve_type = "secp256k1"

        # Fee ceiling for contract calls, in SUN (0 disables)
        self.fee_limit = _env_int("TRON_FEE_LIMIT", 10_000_000)
        # Minimum energy an address must be able to spend on a contract call
        self.fee_mini = _env_int("TRON_FEE_MINI", 30_000)
        # 1 energy = energy_price SUN; 1 byte of bandwidth = bandwidth_price SUN
        self.energy_price = _env_int("TRON_ENERGY_PRICE_SUN", 140)
        self.bandwidth_price = _env_int("TRON_BANDWIDTH_PRICE_SUN", 1000)
        # Burned when the destination account does not exist yet (0.1 TRX)
        self.create_account_cost = _env_int("TRON_CREATE_ACCOUNT_COST_SUN", 100_000)
        # Validity window measured from build time
        self.expiration_ms = _env_int("TRON_TX_EXPIRATION_MS", 36_000_000)

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        # Validation
        self._validate_config()

    @property
    def is_testnet(self) -> bool:
        return self.network == "testnet"

    def _validate_config(self):
        """Validate configuration settings"""
        if self.network not in ["mainnet", "testnet"]:
            raise ValueError(f"Invalid TRON_NETWORK: {self.network}. Must be 'mainnet' or 'testnet'")

        for name in ("fee_limit", "fee_mini", "energy_price", "bandwidth_price", "create_account_cost"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

        if self.energy_price == 0:
            raise ValueError("energy_price must be positive")

        if self.expiration_ms <= 0:
            raise ValueError("TRON_TX_EXPIRATION_MS must be positive")

        if self.request_timeout <= 0:
            raise ValueError("TRON_REQUEST_TIMEOUT must be positive")

        if not self.local_node_enabled and not self.remote_full_node:
            logger.warning("No TRON node endpoint configured: local node disabled and remote URL empty")

    def get_node_bases(self) -> list:
        """Node base URLs in the order they should be tried, local first"""
        bases = []
        if self.local_node_enabled and self.local_full_node:
            bases.append(self.local_full_node.rstrip("/"))
        if self.remote_full_node:
            remote = self.remote_full_node.rstrip("/")
            if remote not in bases:
                bases.append(remote)
        return bases


def configure_logging(level: str | None = None) -> None:
    """Install a basic stream handler for command-line and script use"""
    logging.basicConfig(
        level=getattr(logging, (level or config.log_level), logging.INFO),
        format=LOG_FORMAT,
    )


# Global config instance
config = SettlementConfig()


def load_config() -> SettlementConfig:
    """Load and return configuration"""
    return config
