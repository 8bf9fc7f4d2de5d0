"""
Client configuration for the Polymarket CLOB API.

Everything the client needs is passed in at construction through
``ClientConfig``. ``ClientConfig.from_env()`` is a convenience for scripts
and the CLI; the client itself never reads the environment.

SECURITY WARNING:
- Never commit your private key to git
- Use environment variables or a .env file
- Add .env to .gitignore
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from .types import SignatureType

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://clob.polymarket.com"
POLYGON = 137
AMOY = 80002

# Exchange contracts the signed orders are verified against, per chain
CONTRACTS: Dict[int, Dict[str, str]] = {
    POLYGON: {
        "exchange": "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8a8EF69",
        "neg_risk_exchange": "0xC5d563A36AE78145C45a50134d48A1215220f80a",
        "collateral": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "conditional_tokens": "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045",
    },
    AMOY: {
        "exchange": "0xdFE02Eb6733538f8Ea35D585af8DE5958AD99E40",
        "neg_risk_exchange": "0xC5d563A36AE78145C45a50134d48A1215220f80a",
        "collateral": "0x9c4e1703476e875070ee25b56a58b008cfb8fa78",
        "conditional_tokens": "0x69308FB512518e39F9b16112fA8d994F4e2Bf8bB",
    },
}


@dataclass
class RetryPolicy:
    """
    Knobs for caller-side retries (see ``retry.call_with_retry``).

    The client never retries on its own.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0

    def delay_for(self, attempt: int) -> float:
        """Exponential backoff for the given 1-based attempt number."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


@dataclass
class ClientConfig:
    """Configuration for a CLOB client."""

    # === CLOB API ===
    host: str = DEFAULT_HOST
    chain_id: int = POLYGON

    # === Authentication ===
    signature_type: SignatureType = SignatureType.EOA
    funder: Optional[str] = None  # address holding the funds, if not the signer

    # === Transport ===
    request_timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    # === Typed-data domain ===
    exchange_address: Optional[str] = None
    neg_risk_exchange_address: Optional[str] = None
    domain_version: str = "1"

    def __post_init__(self):
        self.host = self.host.rstrip("/")
        self.signature_type = SignatureType(int(self.signature_type))
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")

        contracts = CONTRACTS.get(self.chain_id)
        if contracts is None and not self.exchange_address:
            raise ValueError(
                f"No exchange contract known for chain {self.chain_id}; "
                f"pass exchange_address explicitly"
            )
        if contracts:
            self.exchange_address = self.exchange_address or contracts["exchange"]
            self.neg_risk_exchange_address = (
                self.neg_risk_exchange_address or contracts["neg_risk_exchange"]
            )
        if not self.neg_risk_exchange_address:
            self.neg_risk_exchange_address = self.exchange_address

    def verifying_contract(self, neg_risk: bool = False) -> str:
        """Exchange contract orders are signed for."""
        return self.neg_risk_exchange_address if neg_risk else self.exchange_address

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ClientConfig":
        """Load config with environment variable overrides."""
        if env_file:
            load_dotenv(env_file, override=False)
        else:
            load_dotenv(override=False)

        config = {}
        if os.getenv("CLOB_HOST"):
            config["host"] = os.getenv("CLOB_HOST")
        if os.getenv("CHAIN_ID"):
            config["chain_id"] = int(os.getenv("CHAIN_ID"))
        if os.getenv("SIGNATURE_TYPE"):
            config["signature_type"] = SignatureType(int(os.getenv("SIGNATURE_TYPE")))
        if os.getenv("FUNDER_ADDRESS"):
            config["funder"] = os.getenv("FUNDER_ADDRESS")
        if os.getenv("REQUEST_TIMEOUT"):
            config["request_timeout"] = float(os.getenv("REQUEST_TIMEOUT"))

        return cls(**config)


def get_private_key() -> str:
    """
    Get private key from environment variable.

    Returns:
        Private key string (with or without 0x prefix)

    Raises:
        ValueError: If PRIVATE_KEY env var is not set
    """
    pk = os.getenv("PRIVATE_KEY")
    if not pk:
        raise ValueError(
            "PRIVATE_KEY environment variable not set. "
            "Set it with: export PRIVATE_KEY='your-private-key'"
        )
    return pk


# === Environment Template ===
ENV_TEMPLATE = """
# Polymarket CLOB client configuration
# Copy this to .env and fill in your values

# Your wallet's private key (required)
# WARNING: Never share or commit this!
PRIVATE_KEY=

# Funder address (optional, defaults to the signer address)
# Use this if your funds are in a proxy wallet / safe
FUNDER_ADDRESS=

# CLOB API host (optional, has default)
CLOB_HOST=https://clob.polymarket.com

# Chain ID (optional, 137 = Polygon, 80002 = Amoy)
CHAIN_ID=137

# Signature type (optional, defaults to 0 for EOA)
# 0 = EOA (MetaMask, hardware wallet)
# 1 = Email/Magic wallet
# 2 = Browser wallet proxy
SIGNATURE_TYPE=0

# Request timeout in seconds
REQUEST_TIMEOUT=30
"""


def create_env_template(path: str = ".env.template") -> str:
    """Write a template .env file and return its path."""
    with open(path, "w") as f:
        f.write(ENV_TEMPLATE.strip() + "\n")
    logger.info(f"Created {path} - copy to .env and fill in your values")
    return path
