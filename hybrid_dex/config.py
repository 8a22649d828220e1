"""Client configuration for the Hybrid DEX SDK."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from solana.rpc.commitment import Commitment, Confirmed
from solders.pubkey import Pubkey

from .program.constants import DEFAULT_MARKET_SEED_WIDTH, PROGRAM_ID
from .program.errors import HybridDexError
from .program.pda import encode_market_seed

CLUSTER_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "localnet": "http://127.0.0.1:8899",
}

DEFAULT_CLUSTER = "devnet"
DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"

ENV_RPC_URL = "HYBRID_DEX_RPC_URL"
ENV_CLUSTER = "HYBRID_DEX_CLUSTER"
ENV_KEYPAIR = "HYBRID_DEX_KEYPAIR"
ENV_PROGRAM_ID = "HYBRID_DEX_PROGRAM_ID"
ENV_MARKET_SEED_WIDTH = "HYBRID_DEX_MARKET_SEED_WIDTH"


class ConfigError(HybridDexError):
    """Raised when a configuration value cannot be used."""

    pass


def cluster_url(cluster: str) -> str:
    """Resolve a cluster name to its public RPC URL.

    Raises:
        ConfigError: If the cluster name is unknown
    """
    try:
        return CLUSTER_URLS[cluster]
    except KeyError:
        raise ConfigError(
            f"Unknown cluster {cluster!r} (expected one of {', '.join(CLUSTER_URLS)})"
        ) from None


def _validate_seed_width(width: int) -> int:
    # Raises InvalidSeedsError for anything but the supported widths
    encode_market_seed(0, width)
    return width


@dataclass
class ClientConfig:
    """Connection, signer and program settings for a session."""

    rpc_url: str = CLUSTER_URLS[DEFAULT_CLUSTER]
    keypair_path: str = DEFAULT_KEYPAIR_PATH
    program_id: Pubkey = field(default_factory=lambda: PROGRAM_ID)
    market_seed_width: int = DEFAULT_MARKET_SEED_WIDTH
    commitment: Commitment = Confirmed

    def __post_init__(self):
        _validate_seed_width(self.market_seed_width)

    @classmethod
    def default(cls) -> "ClientConfig":
        """Create default config (devnet, Solana CLI keypair, 8-byte market seeds)."""
        return cls()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Create config from ``HYBRID_DEX_*`` environment variables.

        ``HYBRID_DEX_RPC_URL`` takes precedence over ``HYBRID_DEX_CLUSTER``.
        """
        env = os.environ if environ is None else environ
        config = cls.default()

        if env.get(ENV_RPC_URL):
            config.with_rpc_url(env[ENV_RPC_URL])
        elif env.get(ENV_CLUSTER):
            config.with_cluster(env[ENV_CLUSTER])

        if env.get(ENV_KEYPAIR):
            config.with_keypair_path(env[ENV_KEYPAIR])

        if env.get(ENV_PROGRAM_ID):
            try:
                config.with_program_id(Pubkey.from_string(env[ENV_PROGRAM_ID]))
            except ValueError as e:
                raise ConfigError(f"{ENV_PROGRAM_ID} is not a valid address: {e}") from e

        if env.get(ENV_MARKET_SEED_WIDTH):
            try:
                width = int(env[ENV_MARKET_SEED_WIDTH])
            except ValueError:
                raise ConfigError(
                    f"{ENV_MARKET_SEED_WIDTH} must be an integer, "
                    f"got {env[ENV_MARKET_SEED_WIDTH]!r}"
                ) from None
            config.with_market_seed_width(width)

        return config

    def with_rpc_url(self, url: str) -> "ClientConfig":
        """Set the RPC endpoint."""
        self.rpc_url = url
        return self

    def with_cluster(self, cluster: str) -> "ClientConfig":
        """Set the RPC endpoint from a cluster name."""
        self.rpc_url = cluster_url(cluster)
        return self

    def with_keypair_path(self, path: str) -> "ClientConfig":
        """Set the signer keypair file."""
        self.keypair_path = path
        return self

    def with_program_id(self, program_id: Pubkey) -> "ClientConfig":
        """Set the program id."""
        self.program_id = program_id
        return self

    def with_market_seed_width(self, width: int) -> "ClientConfig":
        """Set the market seed width (4 or 8 bytes)."""
        self.market_seed_width = _validate_seed_width(width)
        return self

    def with_commitment(self, commitment: Commitment) -> "ClientConfig":
        """Set the commitment used for reads and confirmation."""
        self.commitment = commitment
        return self

    @property
    def expanded_keypair_path(self) -> Path:
        """Keypair path with ``~`` expanded."""
        return Path(self.keypair_path).expanduser()
